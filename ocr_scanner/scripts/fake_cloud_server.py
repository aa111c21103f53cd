"""
Fake cloud OCR server for exercising the escalation path without an Azure key.

Implements the submit/poll protocol on port 9100:
  POST /vision/v2.0/recognizeText   → 202 + Operation-Location
  GET  /operations/<id>             → NotStarted, Running, ..., Succeeded

FAKE_OCR_LINES (|-separated) sets the lines returned on success,
FAKE_OCR_POLLS how many polls an operation takes to succeed (default 3),
FAKE_OCR_FAIL=1 makes every operation end in Failed.

Usage:
    python ocr_scanner/scripts/fake_cloud_server.py
    CLOUD_OCR_ENDPOINT=http://localhost:9100/vision/v2.0/recognizeText CLOUD_OCR_KEY=dev ...
"""

import os
import uuid
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

API_KEY_HEADER = "Ocp-Apim-Subscription-Key"
BASE = "http://localhost:9100"

LINES = os.getenv("FAKE_OCR_LINES", "router admin page|reachable at 192.168.1.20").split("|")
POLLS_TO_SUCCEED = int(os.getenv("FAKE_OCR_POLLS", "3"))
FAIL = os.getenv("FAKE_OCR_FAIL", "0") == "1"

app = FastAPI(title="fake-cloud-ocr")

# operation id -> number of polls so far
_operations: dict[str, int] = {}


def _unauthorized():
    return JSONResponse({"error": {"code": "401", "message": "missing subscription key"}}, status_code=401)


@app.post("/vision/v2.0/recognizeText")
async def recognize_text(request: Request):
    if not request.headers.get(API_KEY_HEADER):
        return _unauthorized()
    body = await request.body()
    op_id = uuid.uuid4().hex[:12]
    _operations[op_id] = 0
    print(f"[cloud] accepted {len(body)} bytes → operation {op_id}")
    return JSONResponse(None, status_code=202, headers={"Operation-Location": f"{BASE}/operations/{op_id}"})


@app.get("/operations/{op_id}")
async def operation(op_id: str, request: Request):
    if not request.headers.get(API_KEY_HEADER):
        return _unauthorized()
    if op_id not in _operations:
        return JSONResponse({"error": {"code": "404", "message": "unknown operation"}}, status_code=404)
    _operations[op_id] += 1
    polls = _operations[op_id]

    if polls == 1:
        status = "NotStarted"
    elif polls < POLLS_TO_SUCCEED:
        status = "Running"
    else:
        status = "Failed" if FAIL else "Succeeded"
    print(f"[cloud] {op_id} poll #{polls} → {status}")

    if status != "Succeeded":
        return {"status": status}
    return {
        "status": status,
        "recognitionResult": {"lines": [{"text": line} for line in LINES]},
    }


if __name__ == "__main__":
    print(f"Fake cloud OCR server starting on {BASE}")
    uvicorn.run(app, host="0.0.0.0", port=9100)
