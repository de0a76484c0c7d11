"""Shared SOP samples and a stub LLM for the unit tests."""

import base64
import copy
import json

from sop_service.config import Settings

PART = {
    "Category": "Fastener",
    "Part Number/Specification": "BOLT-A M4x10",
    "Description": "Bolt A, M4 x 10 mm",
    "Quantity": 1,
}

TORQUE_DRIVER = {
    "Category": "Tool",
    "Part Number/Specification": "TD-5NM",
    "Description": "Torque driver set to 5 Nm",
    "Quantity": 1,
}

VALID_SOP = {
    "Initial Setup: Required Tools and Materials": [PART, TORQUE_DRIVER],
    "Steps": [
        {
            "Purpose/Scope": "Fasten bolt A to the housing.",
            "Tools and Materials": [PART, TORQUE_DRIVER],
            "Timestamp": {"Start": "00:05", "End": "00:20"},
            "Procedure": ["Insert bolt A into the housing.", "Torque bolt A to 5 Nm."],
            "Image Suggestions": ["00:12", "00:19"],
            "Quality Checks": ["Verify bolt A is torqued to 5 Nm."],
        }
    ],
}

PARTIAL_SOP = {
    **VALID_SOP,
    "Errors": ["Missing part number for the housing, not visible in video"],
}


def valid_sop() -> dict:
    return copy.deepcopy(VALID_SOP)


def pdf_data_url(content: bytes = b"%PDF-1.4 test") -> str:
    return "data:application/pdf;base64," + base64.b64encode(content).decode("ascii")


def make_settings(**overrides) -> Settings:
    values = {"openai_api_key": "sk-test", "_env_file": None}
    values.update(overrides)
    return Settings(**values)


class FakeLLM:
    """Records uploads and generation calls; replies from a queue."""

    def __init__(self, responses=None, settings=None, supports_upload=True, upload_error=None):
        self.settings = settings or make_settings()
        self.supports_file_upload = supports_upload
        self.responses = list(responses if responses is not None else [json.dumps(VALID_SOP)])
        self.upload_error = upload_error
        self.uploads = []
        self.calls = []

    async def upload_file(self, content, filename, mime):
        if self.upload_error is not None:
            raise self.upload_error
        self.uploads.append((filename, mime, content))
        return f"file-{len(self.uploads)}"

    async def generate_structured(self, messages, schema_name, schema, model=None):
        self.calls.append({"messages": messages, "schema_name": schema_name, "schema": schema, "model": model})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response
