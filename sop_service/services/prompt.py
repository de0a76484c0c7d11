"""SOP authoring policy and the JSON Schema the provider must satisfy."""

from typing import Any

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from sop_service.models.sop import TIMESTAMP_PATTERN

SOP_SCHEMA_NAME = "manufacturing_sop"

_PART_ITEM_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["Category", "Part Number/Specification", "Description", "Quantity"],
    "properties": {
        "Category": {"type": "string"},
        "Part Number/Specification": {"type": "string"},
        "Description": {"type": "string"},
        "Quantity": {"type": "integer", "minimum": 1},
    },
}

SOP_JSON_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["Initial Setup: Required Tools and Materials", "Steps"],
    "properties": {
        "Initial Setup: Required Tools and Materials": {
            "type": "array",
            "items": _PART_ITEM_SCHEMA,
        },
        "Steps": {
            "type": "array",
            "items": {
                "type": "object",
                "required": [
                    "Purpose/Scope",
                    "Tools and Materials",
                    "Timestamp",
                    "Procedure",
                    "Image Suggestions",
                    "Quality Checks",
                ],
                "properties": {
                    "Purpose/Scope": {"type": "string"},
                    "Tools and Materials": {"type": "array", "items": _PART_ITEM_SCHEMA},
                    "Timestamp": {
                        "type": "object",
                        "required": ["Start", "End"],
                        "properties": {
                            "Start": {"type": "string", "pattern": TIMESTAMP_PATTERN},
                            "End": {"type": "string", "pattern": TIMESTAMP_PATTERN},
                        },
                    },
                    "Procedure": {"type": "array", "items": {"type": "string"}, "minItems": 1},
                    "Image Suggestions": {
                        "type": "array",
                        "items": {"type": "string", "pattern": TIMESTAMP_PATTERN},
                        "minItems": 1,
                    },
                    "Quality Checks": {
                        "type": "array",
                        "items": {"type": "string"},
                        "minItems": 1,
                    },
                },
            },
        },
    },
}

USER_PREAMBLE = "Use only the provided video transcript and any attached files."

CORRECTION_PROMPT = """The previous response did not pass schema validation.

VALIDATION ERRORS:
{errors}

Correct every error without inventing values and return only the corrected JSON object."""

SOP_PROMPT = r"""You are an expert in manufacturing process documentation.  
I will provide you with a video of a live product build in a manufacturing environment.  
Your task is to watch the video carefully and produce a complete, detailed Standard Operating Procedure (SOP) in JSON format, ready for operator use, with no follow-up clarifications required.

---

**STRICT JSON SCHEMA**  
The output must exactly match the following JSON Schema:

```json
{
  "$schema": "http://json-schema.org/draft-07/schema#",
  "type": "object",
  "required": ["Initial Setup: Required Tools and Materials", "Steps"],
  "properties": {
    "Initial Setup: Required Tools and Materials": {
      "type": "array",
      "items": {
        "type": "object",
        "required": ["Category", "Part Number/Specification", "Description", "Quantity"],
        "properties": {
          "Category": { "type": "string" },
          "Part Number/Specification": { "type": "string" },
          "Description": { "type": "string" },
          "Quantity": { "type": "integer", "minimum": 1 }
        }
      }
    },
    "Steps": {
      "type": "array",
      "items": {
        "type": "object",
        "required": ["Purpose/Scope", "Tools and Materials", "Timestamp", "Procedure", "Image Suggestions", "Quality Checks"],
        "properties": {
          "Purpose/Scope": { "type": "string" },
          "Tools and Materials": {
            "type": "array",
            "items": {
              "type": "object",
              "required": ["Category", "Part Number/Specification", "Description", "Quantity"],
              "properties": {
                "Category": { "type": "string" },
                "Part Number/Specification": { "type": "string" },
                "Description": { "type": "string" },
                "Quantity": { "type": "integer", "minimum": 1 }
              }
            }
          },
          "Timestamp": {
            "type": "object",
            "required": ["Start", "End"],
            "properties": {
              "Start": { "type": "string", "pattern": "^[0-9]{1,2}:[0-5][0-9]$" },
              "End": { "type": "string", "pattern": "^[0-9]{1,2}:[0-5][0-9]$" }
            }
          },
          "Procedure": {
            "type": "array",
            "items": { "type": "string" },
            "minItems": 1
          },
          "Image Suggestions": {
            "type": "array",
            "items": { "type": "string", "pattern": "^[0-9]{1,2}:[0-5][0-9]$" },
            "minItems": 1
          },
          "Quality Checks": {
            "type": "array",
            "items": { "type": "string" },
            "minItems": 1
          }
        }
      }
    }
  }
}
```


**SOP CREATION RULES**  

**Step Breakdown:**  
- Identify all discrete build steps from the video.  
- Each step must be one single action starting with a strong verb (Insert, Tighten, Verify, Connect).  
- Do not combine multiple actions in one step.  

**Timestamps:**  
- "Start" and "End" times must be in MM:SS format.  
- Use exact moments from the video (no approximations).  

**Tools and Materials:**  
- Each step’s "Tools and Materials" array must list all items used in that step.  
- Every item entry must include Category, Part Number/Specification, Description, and Quantity exactly as visible in the video.  

**Procedure:**  
- Use concise, operator-ready, action-oriented language.  
- Each string in "Procedure" must represent a single atomic action.  
- No placeholders or “TBD” values—every instruction must come from the video.  

**Image Suggestions:**  
- Provide one or more MM:SS timestamps per step under "Image Suggestions" for high-resolution still captures.  
- Include the midpoint timestamp of the step and any other key frames that improve clarity.  

**Quality Checks:**  
- List all inspection and verification steps visible in the video, including measurable criteria (e.g., torque values, dimension tolerances, pass/fail thresholds).  
- Use exact values shown in the video where available.  

**Initial Setup:**  
- "Initial Setup: Required Tools and Materials" must list all items required before starting the build (tools, parts, fixtures, PPE if visible).  

**Strict Structure & Style:**  
- Output must be valid JSON matching the schema exactly.  
- Field names must match the schema (capitalization and punctuation included).  
- No extra top-level fields. No markdown or commentary inside the JSON.  
- Use exact part numbers, measurements, and torque values as seen or stated in the video.  


**EXAMPLE JSON OUTPUT**  
The output must exactly match the following JSON Schema:

```json
{
  "Initial Setup: Required Tools and Materials": [
    {
      "Category": "Integrated Circuit",
      "Part Number/Specification": "74C14",
      "Description": "Hex Schmitt Trigger Inverter",
      "Quantity": 1
    },
    {
      "Category": "Breadboard",
      "Part Number/Specification": "BB-830",
      "Description": "830 Tie-Point Solderless Breadboard",
      "Quantity": 1
    },
    {
      "Category": "Power Supply",
      "Part Number/Specification": "PSU-5V",
      "Description": "5V DC Regulated Power Supply",
      "Quantity": 1
    },
    {
      "Category": "Jumper Wire",
      "Part Number/Specification": "JW-MF",
      "Description": "Male-to-Female Jumper Wires, 20cm, Assorted Colors",
      "Quantity": 5
    }
  ],
  "Steps": [
    {
      "Purpose/Scope": "To properly seat the primary control component, the 74C14 IC, onto the breadboard.",
      "Tools and Materials": [
        {
          "Category": "Integrated Circuit",
          "Part Number/Specification": "74C14",
          "Description": "Hex Schmitt Trigger Inverter",
          "Quantity": 1
        },
        {
          "Category": "Breadboard",
          "Part Number/Specification": "BB-830",
          "Description": "830 Tie-Point Solderless Breadboard",
          "Quantity": 1
        }
      ],
      "Timestamp": {
        "Start": "00:51",
        "End": "00:56"
      },
      "Procedure": [
        "Align the 74C14 IC above the center channel of the breadboard.",
        "Ensure the semi-circular notch is oriented to the left, indicating correct pin 1 position.",
        "Press down evenly until all pins are fully seated without bending."
      ],
      "Image Suggestions": ["00:52", "00:54", "00:56"],
      "Quality Checks": [
        "Verify the notch on the IC is oriented left, with pin 1 at the top-left position.",
        "Ensure all pins are straight and fully inserted into the breadboard sockets."
      ]
    },
    {
      "Purpose/Scope": "To connect power and ground rails to the IC for proper operation.",
      "Tools and Materials": [
        {
          "Category": "Jumper Wire",
          "Part Number/Specification": "JW-MF",
          "Description": "Male-to-Female Jumper Wires, 20cm, Assorted Colors",
          "Quantity": 2
        },
        {
          "Category": "Power Supply",
          "Part Number/Specification": "PSU-5V",
          "Description": "5V DC Regulated Power Supply",
          "Quantity": 1
        }
      ],
      "Timestamp": {
        "Start": "00:57",
        "End": "01:05"
      },
      "Procedure": [
        "Insert the red jumper wire from the breadboard’s positive rail to pin 14 (Vcc) of the IC.",
        "Insert the black jumper wire from the breadboard’s negative rail to pin 7 (GND) of the IC.",
        "Connect the breadboard’s power rails to the 5V power supply output."
      ],
      "Image Suggestions": ["00:58", "01:00", "01:04"],
      "Quality Checks": [
        "Confirm the red wire connects Vcc to the positive rail.",
        "Confirm the black wire connects GND to the negative rail.",
        "Verify the power supply is set to exactly 5.00V ±0.05V before powering on."
      ]
    }
  ]
}
```


**VALIDATION SAFEGUARD**  
Before returning the output:  
1. **Schema Validation:** Validate the generated JSON against the provided JSON Schema (draft-07).  
2. **Automatic Correction:** If any validation errors are detected, automatically correct them (fix data types, required fields, timestamp formats, missing arrays, invalid quantities, etc.) and re-validate. Corrections must preserve factual values from the video — do not invent part numbers or values. If a missing required field is truly not present in the video, populate it with the most specific observable value; if nothing observable exists, fail the generation (see step 4).  
3. **Re-validate:** Repeat correction and validation until there are zero schema errors.  
4. **Fail-safe:** If the JSON cannot be corrected without inventing values, return a single JSON object that includes an additional top-level required field "Errors" (array of strings) describing what cannot be filled from the video. This "Errors" field is allowed only when factual data is missing and cannot be derived; otherwise it must not appear. Example:  
   ```json
   { "Initial Setup: Required Tools and Materials": [...], "Steps": [...], "Errors": ["Missing torque value for Step 3 — not visible in video"] }
   ```
5. **Final Output**: Only return the final JSON once it passes schema validation (or includes "Errors" as described). The final output must be pure JSON — no commentary, no markdown, no additional text.


**DELIVERABLE**  
When I provide the video:

- Produce a single JSON object that matches the schema exactly (or includes "Errors" when unavoidable).  
- All values must be derived from the video — no placeholders or invented part numbers.  
- All step timestamps must be MM:SS.  
- Each step must contain one atomic action written as an action verb phrase.  
- Include "Image Suggestions" timestamps (midpoint + key frames) for each step.  
- Include "Quality Checks" with explicit pass/fail criteria and measurable values when visible (e.g., torque in Nm, voltages, dimensions).  
- Validate and auto-correct the JSON until it passes schema checks before returning.  
- Return only the JSON object (pure JSON). No additional commentary."""


def build_messages(transcript_text: str | None, attachment_blocks: list[dict[str, Any]]) -> list[BaseMessage]:
    """Assemble the system and user turns for one SOP generation.

    Args:
        transcript_text: Pasted transcript or notes, if any
        attachment_blocks: Content blocks referencing uploaded files

    Returns:
        Messages ready for the chat model
    """
    content: list[dict[str, Any]] = [{"type": "text", "text": USER_PREAMBLE}]
    if transcript_text:
        content.append({"type": "text", "text": transcript_text})
    content.extend(attachment_blocks)

    return [SystemMessage(content=SOP_PROMPT), HumanMessage(content=content)]


def build_correction_message(errors: list[str]) -> HumanMessage:
    """Ask the model to fix a response that failed local validation."""
    return HumanMessage(
        content=CORRECTION_PROMPT.format(
            errors="\n".join(f"- {error}" for error in errors),
        )
    )
