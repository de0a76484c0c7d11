import unittest

from langchain_core.messages import HumanMessage, SystemMessage

from sop_service.services.prompt import (
    SOP_JSON_SCHEMA,
    SOP_PROMPT,
    USER_PREAMBLE,
    build_correction_message,
    build_messages,
)


class PromptUnitTests(unittest.TestCase):
    def test_policy_text(self):
        self.assertTrue(SOP_PROMPT.startswith("You are an expert in manufacturing process documentation."))
        self.assertTrue(SOP_PROMPT.endswith("Return only the JSON object (pure JSON). No additional commentary."))
        self.assertIn("**VALIDATION SAFEGUARD**", SOP_PROMPT)
        self.assertIn('"Errors"', SOP_PROMPT)
        self.assertNotIn("\\`", SOP_PROMPT)
        self.assertIn("```json", SOP_PROMPT)

    def test_schema_shape(self):
        self.assertEqual(SOP_JSON_SCHEMA["$schema"], "http://json-schema.org/draft-07/schema#")
        step = SOP_JSON_SCHEMA["properties"]["Steps"]["items"]
        self.assertEqual(
            step["required"],
            ["Purpose/Scope", "Tools and Materials", "Timestamp", "Procedure", "Image Suggestions", "Quality Checks"],
        )
        for key in ("Procedure", "Image Suggestions", "Quality Checks"):
            self.assertEqual(step["properties"][key]["minItems"], 1)
        part = SOP_JSON_SCHEMA["properties"]["Initial Setup: Required Tools and Materials"]["items"]
        self.assertEqual(part["properties"]["Quantity"], {"type": "integer", "minimum": 1})

    def test_build_messages_with_attachments(self):
        block = {"type": "file", "file": {"file_id": "file-1"}}
        system, user = build_messages("notes", [block])
        self.assertIsInstance(system, SystemMessage)
        self.assertIsInstance(user, HumanMessage)
        self.assertEqual(
            user.content,
            [{"type": "text", "text": USER_PREAMBLE}, {"type": "text", "text": "notes"}, block],
        )

    def test_correction_message_lists_errors(self):
        message = build_correction_message(["Steps/0/Procedure: List should have at least 1 item"])
        self.assertIn("- Steps/0/Procedure: List should have at least 1 item", message.content)


if __name__ == "__main__":
    unittest.main()
