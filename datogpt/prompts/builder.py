"""
Prompt assembly for DatoGPT.

Every oracle call is built from named fragments (behaviour rules, format
contract, context, locale directive, ...). Keeping the fragments named makes
the composition of each call inspectable in tests and in the call log.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

from ..models import GenerationContext, ItemTypeInfo
from .registry import ALT_GENERATION_PROMPT, BASE_PROMPT, FieldPromptRegistry


def to_prompt_json(value: Any) -> str:
    """Render a value the way prompts embed JSON."""
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


class Prompt:
    """
    An ordered list of named text fragments rendered into one system prompt.
    """

    def __init__(self):
        self._fragments: List[Tuple[str, str]] = []

    def add(self, name: str, text: Optional[str]) -> "Prompt":
        """Append a fragment; empty fragments are dropped."""
        if text:
            self._fragments.append((name, text))
        return self

    def fragment_names(self) -> List[str]:
        return [name for name, _ in self._fragments]

    def fragment(self, name: str) -> Optional[str]:
        for fragment_name, text in self._fragments:
            if fragment_name == name:
                return text
        return None

    def render(self) -> str:
        return "".join(text for _, text in self._fragments)

    def __str__(self) -> str:
        return self.render()


class PromptBuilder:
    """
    Builds the prompts for every oracle call made by generation and translation.
    """

    def __init__(
        self,
        registry: Optional[FieldPromptRegistry] = None,
        base_prompt: Optional[str] = None,
        alt_prompt: Optional[str] = None,
        locale_names: Optional[Dict[str, str]] = None
    ):
        """
        Initialize the prompt builder.

        Args:
            registry: Output-format contracts (defaults to the built-in set)
            base_prompt: Behaviour rules prepended to every prompt
            alt_prompt: Instruction used for alt-text generation
            locale_names: Locale code -> language name used in locale directives
        """
        self.registry = registry or FieldPromptRegistry()
        self.base_prompt = base_prompt or BASE_PROMPT
        self.alt_prompt = alt_prompt or ALT_GENERATION_PROMPT
        self.locale_names = locale_names or {}

    @classmethod
    def from_config(cls, manager) -> "PromptBuilder":
        return cls(
            registry=FieldPromptRegistry(manager.field_prompts),
            base_prompt=manager.base_prompt,
            alt_prompt=manager.alt_generation_prompt,
            locale_names=manager.locale_names
        )

    # Fragments

    def language_name(self, locale: str) -> str:
        """Language name for a locale code; the code itself when unknown."""
        if locale in self.locale_names:
            return self.locale_names[locale]
        primary = locale.split("-")[0]
        return self.locale_names.get(primary, locale)

    def format_contract(self, field_type: str) -> Optional[str]:
        """`Return the response in the format of ...` for a field type, if it has a contract."""
        contract = self.registry.get_contract(field_type)
        if not contract:
            return None
        return " Return the response in the format of " + contract.instruction

    def locale_directive(self, locale: str) -> str:
        return " translate your response to " + self.language_name(locale)

    def context_fragments(self, prompt: Prompt, context: GenerationContext) -> Prompt:
        """Fieldset, enclosing block and record context of a field."""
        fieldset = context.fieldset_info
        if fieldset and fieldset.name:
            prompt.add("fieldset", " considering it is in the " + fieldset.name + " fieldset")
        if fieldset and fieldset.hint:
            prompt.add("fieldset_hint", " that has the description of " + fieldset.hint)
        parent = context.parent_block_info
        if parent:
            prompt.add(
                "parent_block",
                " that is part of a block named " + parent.name + " block,"
                " considering that we already generated the following fields: "
                + to_prompt_json(parent.generated_fields)
            )
        prompt.add("record", " considering the context of the record " + to_prompt_json(record_context(context)))
        return prompt

    def field_label_guidance(self, context: GenerationContext) -> str:
        field = context.field_info
        guidance = (
            " the label of the field that you are generating a value to is " + field.name +
            " make it so the field label is the most important contextual clue. If the label is answer, "
            "the result should be an answer, if the label is title, the result should be a title, and so on."
        )
        if field.hint and not context.is_improve:
            guidance += " its writing instruction is " + field.hint
        validators = field.validators_json()
        if validators and context.field_type != "rich_text":
            guidance += (
                " and its validators are " + validators +
                " if present, always respect the length max and min number of characters"
            )
        guidance += (
            " use this information only for conceptual purposes, do not mention it in your response or make it "
            "alter the response format, do not include the field label in your response."
        )
        return guidance

    # Generation prompts

    def meta_prompt(self, context: GenerationContext, for_image: bool = False) -> Prompt:
        """
        Prompt asking the LLM to expand the user's instruction into a precise,
        field-specific instruction (or an image-generation prompt).
        """
        field = context.field_info
        prompt = Prompt()
        prompt.add("behaviour", self.base_prompt)
        prompt.add(
            "task",
            "Generate the perfect prompt for a " + field.name + " field, that is an instance of a " +
            (context.model_name or "record") + ". Respect the name of the field in regards to the context of "
            "the meta prompt that you will generate. The intention of the user is to " + context.prompt +
            " make sure that the prompt generated is specifically for the " + field.name + " field."
        )
        if for_image:
            prompt.add("image", " The prompt will be sent to an image generation model, make sure it takes that into account.")
        self.context_fragments(prompt, context)
        if for_image:
            opening = 'Generate a ' + field.name + ' image depicting ... mainly considering that the context talks about...'
        else:
            opening = 'Generate a ' + field.name + ' field with a value ... considering that the context talks about...'
        prompt.add(
            "shape",
            " do not mention that it has several locales or languages, remember to return a prompt, that should "
            'always start with "' + opening + ' and that there are already fields with values like ..." '
            "(using here information from the context of the record provided above)"
        )
        return prompt

    def value_prompt(self, context: GenerationContext, meta_prompt: str) -> Prompt:
        """Second call of the default path: produce the raw value."""
        contract = self.format_contract(context.field_type)
        prompt = Prompt()
        prompt.add("behaviour", self.base_prompt)
        prompt.add("contract", contract)
        prompt.add("instruction", " what you should do is " + meta_prompt)
        prompt.add("label", self.field_label_guidance(context))
        prompt.add("contract_reminder", " But always keep the response in the format of" + (contract or ""))
        prompt.add("locale", self.locale_directive(context.locale))
        return prompt

    def improve_prompt(self, context: GenerationContext, current_value: Any) -> Prompt:
        """Improve path: seed with the current value and ask for a minimal revision."""
        if isinstance(current_value, (dict, list)):
            rendered = to_prompt_json(current_value)
        else:
            rendered = "" if current_value is None else str(current_value)
        contract = self.format_contract(context.field_type)
        prompt = Prompt()
        prompt.add("behaviour", self.base_prompt)
        prompt.add("contract", contract)
        prompt.add("current_value", " Improve on the previous field value that was " + rendered)
        prompt.add(
            "instruction",
            " keeping the initial value as much as possible, only modify what you need to improve the value to "
            "follow the following instruction: what you should do is " + context.prompt +
            " keeping the initial value as much as possible, only modify what you need to improve the value to "
            "follow that instruction"
        )
        prompt.add("label", self.field_label_guidance(context))
        prompt.add("contract_reminder", " But always keep the response in the format of" + (contract or ""))
        prompt.add("locale", self.locale_directive(context.locale))
        return prompt

    def block_selection_prompt(
        self,
        instruction: str,
        catalog: List[ItemTypeInfo],
        document: Optional[str] = None
    ) -> Prompt:
        """Ask which permitted block types to create, each with its own instruction."""
        prompt = Prompt()
        prompt.add("behaviour", self.base_prompt)
        if document is None:
            prompt.add(
                "task",
                " Based on the prompt " + instruction + " what available blocks should I create to better "
                "accomplish the prompt?"
            )
        else:
            prompt.add(
                "task",
                " Based on the prompt " + instruction + " what available blocks should I insert into this html? " +
                document
            )
        prompt.add("catalog", " The available blocks are: " + to_prompt_json([catalog_entry(item) for item in catalog]))
        prompt.add(
            "shape",
            " return the response as an array of objects as a valid JSON, deleting the blocks that should not be "
            "created for this prompt, and keeping the ones that should be created. Choose only the ones really "
            "necessary, be conservative with the number of blocks. You can repeat a block more than once if you "
            "think it is necessary for the prompt. Keep the blockModelId of each chosen block unchanged and add a "
            '"prompt" key to each block, the prompt value should be an instruction to generate the block, always '
            'starting with "Generate a block that..."'
        )
        return prompt

    def block_merge_prompt(self, nodes: List[Any], block_nodes: List[Any]) -> Prompt:
        """Ask the LLM to place generated block nodes into a node sequence."""
        prompt = Prompt()
        prompt.add("behaviour", self.base_prompt)
        prompt.add("nodes", " insert into the following JSON array of objects: " + to_prompt_json(nodes))
        prompt.add(
            "blocks",
            " the following objects, in the appropriate positions, where it is contextually appropriate, do not "
            "repeat any object, and use all of them: " + to_prompt_json(block_nodes)
        )
        prompt.add(
            "shape",
            " return the exact JSON array at the start of this message, do not remove or alter anything, just add "
            "the objects from the second array into the first one in the correct positions"
        )
        return prompt

    def improve_text_array_prompt(self, texts: List[str], instruction: str, locale: str) -> Prompt:
        """Revise an array of text leaves in place."""
        prompt = Prompt()
        prompt.add("behaviour", self.base_prompt)
        prompt.add("texts", " Given the following strings array: " + to_prompt_json(texts))
        prompt.add(
            "instruction",
            " Do not add or remove any strings. Keeping the initial value of the strings as much as possible, only "
            "modify the strings you need to improve the value to follow the following instruction: what you should "
            "do is: " + instruction
        )
        prompt.add(
            "shape",
            " Ignore empty strings and strings with just spaces (but do not remove them), keep them as they are. "
            "Return the updated strings array in a valid JSON format, do not remove spaces or empty strings. The "
            "number of returned strings should be the same as the number of strings in the original array"
        )
        prompt.add("locale", self.locale_directive(locale))
        return prompt

    # Translation prompts

    def translate_text_prompt(self, value: Any, to_locale: str, field_type: str) -> Prompt:
        prompt = Prompt()
        prompt.add("behaviour", self.base_prompt)
        prompt.add("value", ' translate the following string\n"' + str(value) + '"\n')
        prompt.add("target", " to the language " + self.language_name(to_locale))
        prompt.add("contract", self.format_contract(field_type))
        return prompt

    def translate_seo_prompt(self, seo: Dict[str, Any], to_locale: str) -> Prompt:
        prompt = Prompt()
        prompt.add("behaviour", self.base_prompt)
        prompt.add("value", " translate the following string\n" + json.dumps(seo, ensure_ascii=False))
        prompt.add("target", " to the language " + self.language_name(to_locale))
        prompt.add(
            "contract",
            ' Return the response as a valid JSON object with exactly the keys "title" and "description", '
            "only return the json string, nothing else"
        )
        return prompt

    def translate_text_array_prompt(self, texts: List[str], to_locale: str) -> Prompt:
        prompt = Prompt()
        prompt.add("behaviour", self.base_prompt)
        prompt.add("texts", " translate the following string array " + json.dumps(texts, ensure_ascii=False))
        prompt.add("target", " to the language " + self.language_name(to_locale))
        prompt.add(
            "shape",
            " return the translated strings array in a valid JSON format do not remove spaces or empty strings. "
            "The number of returned strings should be the same as the number of strings in the original array. "
            "Do not remove any spaces or empty strings from the array."
        )
        return prompt

    def alt_text_prompt(self, locale: str) -> str:
        return self.alt_prompt + self.locale_directive(locale)


def catalog_entry(item: ItemTypeInfo) -> Dict[str, str]:
    return {"name": item.name, "apiKey": item.api_key, "blockModelId": item.id}


def record_context(context: GenerationContext) -> Dict[str, Any]:
    """Record form values without host bookkeeping keys."""
    return {key: value for key, value in context.form_values.items() if key != "internalLocales"}
