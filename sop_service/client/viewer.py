"""Result viewer for the last generated SOP."""

import json
from typing import Any

from sop_service.client.session import SOP_RESULT_KEY, SessionState

EMPTY_MESSAGE = "No SOP found. Go back and generate one first."


class ResultViewer:
    """Renders the stored SOP verbatim; no schema checks are applied."""

    def __init__(self, state: SessionState):
        self.state = state

    def load(self) -> Any:
        return self.state.get_json(SOP_RESULT_KEY)

    def render(self) -> str:
        document = self.load()
        if document is None:
            return EMPTY_MESSAGE
        return json.dumps(document, indent=2, ensure_ascii=False)
