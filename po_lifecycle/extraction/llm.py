"""
LLM access for purchase-order extraction.
Builds the chat model, the extraction prompt, and parses the model's JSON reply.
"""

import json
import re
from typing import Dict

from langchain_openai import ChatOpenAI
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_core.prompts import PromptTemplate

from po_lifecycle.validation.schema import (
    BUSINESS_RULES,
    DEFAULT_VALUES,
    FIELD_FORMATS,
    required_fields_by_section,
    schema_outline,
)
from po_lifecycle.utils.logging import setup_logging
from po_lifecycle.config import get_config


logger = setup_logging(__name__)
config = get_config()


EXTRACTION_PROMPT_TEMPLATE = """You are a specialized purchase order processor. Extract data according to this exact schema:

{schema}

Required fields:
{required_fields}

Field formats:
{field_formats}

Business rules:
{business_rules}

Defaults (only when the document does not say):
{defaults}

Rules: Return ONLY valid JSON. Dates in YYYY-MM-DD. Numbers as numbers, not strings. Use exact field names. Products must not be empty.

Document:
{document_text}"""


MOCK_RESPONSE = """
{
    "header": {
        "poNumber": "10000001",
        "orderDate": "2026-01-15",
        "status": "UPLOADED",
        "buyerInfo": {"firstName": "Mock", "lastName": "Buyer", "email": "mock.buyer@example.com"},
        "syscoLocation": {"name": "Mock Distribution Center", "address": "1 Mock Way", "region": "Central"},
        "deliveryInfo": {"date": "2026-01-22", "instructions": "Dock 4"}
    },
    "products": [
        {"supc": "1234567", "description": "Mock Product A", "packSize": "6/5 LB", "quantity": 10, "fobCost": 25.0, "total": 250.0},
        {"supc": "7654321", "description": "Mock Product B", "packSize": "12/1 QT", "quantity": 5, "fobCost": 10.0, "total": 50.0}
    ],
    "weights": {"grossWeight": 120.0, "netWeight": 100.0},
    "totalCost": 300.0,
    "revision": 1,
    "revisionInfo": "Initial version"
}
"""


def get_llm(model_name: str = None):
    """Get LLM instance based on provider."""
    model = model_name or config.LLM_MODEL

    if config.LLM_PROVIDER == "gemini":
        return ChatGoogleGenerativeAI(
            model=model,
            google_api_key=config.GOOGLE_API_KEY,
            temperature=config.LLM_TEMPERATURE,
            max_output_tokens=config.LLM_MAX_TOKENS,
        )
    return ChatOpenAI(
        model=model,
        api_key=config.LLM_API_KEY,
        base_url=config.LLM_API_BASE,
        temperature=config.LLM_TEMPERATURE,
        max_tokens=config.LLM_MAX_TOKENS,
        timeout=config.LLM_TIMEOUT,
        max_retries=0,  # retries are handled by the extractor
    )


def build_prompt_variables(document_text: str) -> Dict[str, str]:
    return {
        "schema": json.dumps(schema_outline(), indent=2),
        "required_fields": "\n".join(
            f"{section}: {', '.join(fields)}" for section, fields in required_fields_by_section().items()
        ),
        "field_formats": "\n".join(
            f"{field}: {fmt['description']}" for field, fmt in FIELD_FORMATS.items()
        ),
        "business_rules": "\n".join(f"- {name}" for name in BUSINESS_RULES),
        "defaults": "\n".join(f"{field}: {value}" for field, value in DEFAULT_VALUES.items()),
        "document_text": preprocess_text(document_text),
    }


def preprocess_text(text: str) -> str:
    """Collapse whitespace so the prompt stays compact."""
    return re.sub(r"\s+", " ", text.replace("\r\n", "\n")).strip()


async def request_extraction(text: str, llm=None) -> str:
    """Ask the LLM for the PO as JSON. Returns the raw reply text."""
    if config.LLM_MOCK_MODE or config.LLM_PROVIDER == "mock":
        logger.info("Mock mode enabled - returning sample JSON response")
        return MOCK_RESPONSE

    llm = llm or get_llm()
    prompt = PromptTemplate(
        input_variables=list(build_prompt_variables("").keys()),
        template=EXTRACTION_PROMPT_TEMPLATE,
    )
    chain = prompt | llm
    response = await chain.ainvoke(build_prompt_variables(text))
    return get_llm_response_text(response).strip()


def get_llm_response_text(response) -> str:
    """Text content of a chat model response, a plain string, or a dict reply."""
    if isinstance(response, str):
        return response

    content = getattr(response, "content", None)
    if isinstance(content, str) and content.strip():
        return content
    if isinstance(content, list):
        # Some providers return content blocks
        text = "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
        if text.strip():
            return text

    if isinstance(response, dict):
        for key in ("content", "text", "output_text"):
            if response.get(key):
                return str(response[key])

    preview = str(response)[:500]
    raise ValueError(f"Could not extract text content from LLM response: {preview}")


def parse_extracted_json(json_str: str) -> dict:
    """
    Parse JSON response from LLM, with robust error handling.
    """
    if not json_str or not json_str.strip():
        raise ValueError("Empty response from LLM")

    json_str = json_str.strip()

    # Try direct parsing first
    try:
        result = json.loads(json_str)
        if isinstance(result, dict) and result:
            return result
    except json.JSONDecodeError:
        pass

    # Wrapped in markdown code blocks
    match = re.search(r'```(?:json)?\s*(.*?)\s*```', json_str, re.DOTALL)
    if match:
        try:
            result = json.loads(match.group(1))
            if isinstance(result, dict) and result:
                return result
        except json.JSONDecodeError:
            pass

    # Outermost object literal in surrounding prose
    start = json_str.find('{')
    end = json_str.rfind('}')
    if start >= 0 and end > start:
        try:
            result = json.loads(json_str[start:end + 1])
            if isinstance(result, dict) and result:
                return result
        except json.JSONDecodeError:
            pass

    response_preview = json_str[:300]
    raise ValueError(f"Could not parse JSON from LLM response:\n{response_preview}")
