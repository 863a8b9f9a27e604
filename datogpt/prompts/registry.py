"""
Output-format contract registry for DatoGPT.

Every field type that the default generation path can fill has a contract:
an opaque instruction telling the LLM how to shape its answer ("return the
value as ..."). Contracts are substituted verbatim into prompts and never
parsed. Defaults can be overridden per field type from configuration.
"""

from typing import Dict, List, Optional
from dataclasses import dataclass


BASE_PROMPT = """Never mention that you're an AI or LLM.
Do not mention your knowledge cutoff.
Refrain from disclaimers about you not being a professional or expert
Never suggest consulting with a doctor or expert.
Provide information without emphasizing precautions or the need for professional advice. Assume I am aware of the general precautions, and respond accordingly.
Refrain from apologies.
Never return your answer in a codeblock, just return plain text.
As a CMS field value assistant, provide only what the prompt requested, without any additional information or context, or any demonstration of agency.
Never say "Here is the value" just give the value, without anything that is not the value asked for.
Never wrap your answer in quotes, unless you are asked to return them in a JSON format.
Never wrap your whole answer in double or single quotes. Do not wrap your whole answer in quotes.
Do not generate HTML strings unless it is specifically asked for. Do not generate markdown strings unless it is specifically asked for.
"""

ALT_GENERATION_PROMPT = (
    "Write a concise alt text for this image, describing what it depicts for a reader "
    "who cannot see it. Return only the alt text, in one or two sentences, without quotes."
)


@dataclass
class FormatContract:
    """
    Output-format contract for one field type.
    """
    field_type: str
    instruction: str
    expects_json: bool = False


class FieldPromptRegistry:
    """
    Registry of output-format contracts keyed by field type.
    """

    def __init__(self, overrides: Optional[Dict[str, str]] = None):
        """
        Initialize the registry with the default contracts.

        Args:
            overrides: Optional field type -> instruction replacements
        """
        self._contracts: Dict[str, FormatContract] = {}
        self._register_default_contracts()
        for field_type, instruction in (overrides or {}).items():
            if not instruction:
                continue
            default = self._contracts.get(field_type)
            self.register_contract(FormatContract(
                field_type=field_type,
                instruction=instruction,
                expects_json=default.expects_json if default else False
            ))

    def _register_default_contracts(self):
        """Register the contracts for the field types supported out of the box."""
        defaults = [
            FormatContract("single_line", "a single line string"),
            FormatContract("markdown", "markdown"),
            FormatContract(
                "wysiwyg",
                "HTML. Do not add the ``html before the returned string, just return me a raw html string"
            ),
            FormatContract("date_picker", 'a String value in ISO 8601 date format (ie. "2015-12-29")'),
            FormatContract(
                "date_time_picker",
                'a String values in ISO 8601 date-time format (ie. "2020-04-17T16:34:31.981+01:00")'
            ),
            FormatContract(
                "integer",
                "an integer number, the answer can only include numbers and no letters"
            ),
            FormatContract(
                "float",
                "a float number, the answer can only include numbers and no letters"
            ),
            FormatContract("boolean", "a single character that can be 0 or 1, 0 for false, and 1 for true"),
            FormatContract(
                "map",
                'A valid JSON string of an object with the following format: {"latitude": Float between -90.0 to 90, '
                '"longitude": Float between -180.0 to 180} only return the json string, nothing else',
                expects_json=True
            ),
            FormatContract(
                "color_picker",
                "A valid JSON string of an object with the following format: {red: Integer between 0 and 255, "
                "blue: Integer between 0 and 255, alpha: Integer between 0 and 255, green: Integer between 0 and 255} "
                "only return the json string, nothing else",
                expects_json=True
            ),
            FormatContract(
                "slug",
                "A String value that will be used as an url slug satisfies the following regular expression: "
                "/^[a-z0-9_]+(?:-[a-z0-9]+)*$/"
            ),
            FormatContract("json", "A valid JSON string. Only return the json string, nothing else", expects_json=True),
            FormatContract(
                "seo",
                'A valid JSON string of an object with the following format: {title: "A string with an SEO title with '
                'at most 60 charactes", description: "A string with an SEO description with at most 160 characters", '
                'if it is asking for a generation, generate also this key value: imagePrompt: "A string describing a '
                'good DALLE 3 prompt to generate an SEO image for this post" if it is asking for an improvement, '
                'generate this key value: image: "repeat the original id of the image" }',
                expects_json=True
            ),
            FormatContract("textarea", "a string with no limit on the number of characters"),
        ]
        for contract in defaults:
            self.register_contract(contract)

    def register_contract(self, contract: FormatContract) -> None:
        """
        Register (or replace) the contract for a field type.

        Args:
            contract: The contract to register
        """
        self._contracts[contract.field_type] = contract

    def get_contract(self, field_type: str) -> Optional[FormatContract]:
        """
        Get the contract for a field type.

        Args:
            field_type: The field editor type

        Returns:
            The contract, or None when the type has no contract
        """
        return self._contracts.get(field_type)

    def has_contract(self, field_type: str) -> bool:
        return field_type in self._contracts

    def list_field_types(self) -> List[str]:
        """
        Get a list of all field types with a contract.

        Returns:
            List of field types
        """
        return list(self._contracts.keys())
