from flask import Flask, request, jsonify
from flask_cors import CORS
import compiler

app = Flask(__name__)
app.json.sort_keys = False  # keep result fields in pipeline order
CORS(app)  # allow cross-origin requests


def empty_response(errors):
    return {
        "lines": [],
        "errors": errors,
        "declared": [],
    }


def line_to_dict(res):
    """
    Serialize one compile_line result to plain JSON types
    """
    return {
        "lineno": res["lineno"],
        "line": res["line"],
        "tokens": [{"type": t.type, "value": t.value} for t in res["tokens"]],
        "status": res["status"],
        "error": res["error"],
        "phase": res["phase"],
        "statement": res["statement"],
        "postfix": list(res["postfix"]),
        "tac": [repr(t) for t in res["tac"]],
        "assembly": [str(a) for a in res["asm"]],
        "optimized_assembly": [str(o) for o in res["optimized"]],
        "binary": list(res["binary"]),
    }


def read_source(data):
    if not isinstance(data, dict):
        return None
    lines = data.get("lines")
    if isinstance(lines, list):
        if not all(isinstance(line, str) for line in lines):
            return None
        return lines
    if isinstance(data.get("code"), str):
        return data["code"]
    return None


@app.route("/compile", methods=["POST"])
def compile_code():
    data = request.get_json(silent=True)
    source = read_source(data)
    if source is None:
        return jsonify(empty_response(["Request must carry 'code' or 'lines'"])), 400
    try:
        program = compiler.compile_program(source)
        response = {
            "lines": [line_to_dict(r) for r in program["lines"]],
            "errors": program["errors"],
            "declared": program["declared"],
        }
        return jsonify(response)
    except Exception as e:
        app.logger.exception("compile failed")
        return jsonify(empty_response([f"Unexpected error: {str(e)}"])), 500


@app.route("/compile/line", methods=["POST"])
def compile_single_line():
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not isinstance(data.get("line"), str):
        return jsonify(empty_response(["Request must carry 'line'"])), 400
    names = data.get("declared") or []
    if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
        return jsonify(empty_response(["'declared' must be a list of names"])), 400
    declared = set(names)
    try:
        res = compiler.compile_line(data["line"], declared, data.get("lineno"))
        response = line_to_dict(res)
        response["declared"] = sorted(declared)
        return jsonify(response)
    except Exception as e:
        app.logger.exception("line compile failed")
        return jsonify(empty_response([f"Unexpected error: {str(e)}"])), 500


@app.route("/sample", methods=["GET"])
def sample():
    return jsonify({"lines": compiler.SAMPLE_PROGRAM})


if __name__ == "__main__":
    app.run(debug=True)
