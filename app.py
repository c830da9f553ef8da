"""Flask web app: upload EDI 855 files and get their ordered-drug records back."""

import os
import uuid

from flask import Flask, request, send_file, jsonify

from batch import process_document
from config import load_settings
from drug_records import record_to_dict
from enrichment import SqliteDrugCatalog
from excel_writer import write_ordered_drugs_excel
from format_detect import detect_format, detect_x12_type
from history import OrderingHistoryRecorder

settings = load_settings()

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_mb * 1024 * 1024
app.config["UPLOAD_DIR"] = settings.upload_dir
app.config["DB_PATH"] = settings.db_path
app.config["JOB_ID"] = settings.job_id

SUPPORTED_TYPES = ("855", "997")


@app.route("/")
def index():
    return "EDI 855 ordered-drug parser. POST files to /upload.\n"


@app.route("/history")
def history():
    """Recorded opioid ordering history as JSON."""
    if not app.config.get("DB_PATH"):
        return jsonify({"error": "No history database configured"}), 404
    rows = OrderingHistoryRecorder(app.config["DB_PATH"]).fetch_all()
    return jsonify({"history": rows})


@app.route("/upload", methods=["POST"])
def upload():
    files = request.files.getlist("files")
    if not files or all(not f.filename for f in files):
        return jsonify({"error": "No files provided"}), 400

    output_format = request.args.get("format") or request.form.get("format") or "xlsx"
    catalog = SqliteDrugCatalog(app.config["DB_PATH"]) if app.config.get("DB_PATH") else None

    all_855 = []   # (filename, records)
    errors = []    # (filename, message)

    for file in files:
        if not file.filename:
            continue

        raw = file.read()
        try:
            content = raw.decode("utf-8")
        except UnicodeDecodeError:
            content = raw.decode("latin-1")
        content = content.lstrip("\ufeff").strip()

        if not content:
            errors.append((file.filename, "File is empty"))
            continue
        if detect_format(content) != "x12":
            errors.append((file.filename, "Not an X12 file (missing ISA segment)"))
            continue

        txn_type = detect_x12_type(content)
        if txn_type not in SUPPORTED_TYPES:
            errors.append((file.filename, f"Unsupported X12 transaction set '{txn_type}'"))
            continue

        result = process_document(file.filename, content, job_id=app.config.get("JOB_ID"), catalog=catalog)
        if result.ok:
            all_855.append((file.filename, result.records))
        else:
            errors.append((file.filename, result.error))

    if not any(records for _, records in all_855):
        msg = "No ordered drugs found."
        if errors:
            msg += " Errors: " + "; ".join(f"{name}: {err}" for name, err in errors)
        return jsonify({"error": msg}), 400

    if output_format == "json":
        return jsonify({
            "files": [
                {"filename": name, "orderedDrugs": [record_to_dict(r) for r in records]}
                for name, records in all_855
            ],
            "errors": [{"filename": name, "error": err} for name, err in errors],
        })

    if len(files) == 1 and files[0].filename:
        base_name = os.path.splitext(files[0].filename)[0]
        output_filename = f"{base_name}_ordered_drugs.xlsx"
    else:
        output_filename = "combined_ordered_drugs.xlsx"

    upload_dir = app.config["UPLOAD_DIR"]
    os.makedirs(upload_dir, exist_ok=True)
    output_path = os.path.join(upload_dir, f"{uuid.uuid4().hex}_{output_filename}")

    try:
        write_ordered_drugs_excel(all_855, output_path, errors=errors)
    except Exception as e:
        app.logger.exception("Failed to generate Excel")
        return jsonify({"error": f"Failed to generate Excel: {e}"}), 500

    response = send_file(
        output_path,
        as_attachment=True,
        download_name=output_filename,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )

    @response.call_on_close
    def cleanup():
        try:
            os.remove(output_path)
        except OSError:
            pass

    return response


if __name__ == "__main__":
    print("=" * 56)
    print("  EDI 855 Ordered-Drug Parser")
    print("  Open http://127.0.0.1:5000 in your browser")
    print("=" * 56)
    app.run(debug=True, port=5000)
