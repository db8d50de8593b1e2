"""Code generation through the Anthropic Messages API."""

import json
from typing import Optional

import anthropic

from shipit.core.models import CodeGenerationRequest, CodeGenerationResult, FileChange, TaskType

DEFAULT_MAX_TOKENS = 8192

BASE_SYSTEM_PROMPT = """You are an expert software engineer working on an AI-powered development system.
Your role is to generate high-quality, production-ready code based on developer instructions.

When generating code, you should:
1. Write clean, maintainable, and well-documented code
2. Follow best practices and the conventions already present in the repository
3. Include error handling and edge cases
4. Write appropriate tests when needed
5. Provide clear explanations of your changes

Format your response as JSON with the following structure:
{
  "success": true,
  "files": [
    {
      "path": "relative/path/to/file",
      "content": "full file content here",
      "action": "create|modify|delete"
    }
  ],
  "explanation": "Brief explanation of what was changed and why"
}

Always return the complete content of every created or modified file."""

TASK_PROMPTS = {
    TaskType.BUG_FIX: "Focus on identifying and fixing the bug while minimizing code changes.",
    TaskType.FEATURE: "Focus on implementing the feature with proper structure, tests, and documentation.",
    TaskType.REFACTOR: "Focus on improving code quality, readability, and maintainability without changing behavior.",
    TaskType.TEST: "Focus on creating comprehensive tests that cover edge cases and error scenarios.",
}

FALLBACK_EXPLANATION = "Generated code from AI"


def build_system_prompt(task_type: TaskType) -> str:
    return f"{BASE_SYSTEM_PROMPT}\n\n{TASK_PROMPTS[task_type]}"


def build_user_prompt(request: CodeGenerationRequest) -> str:
    """
    Build the user message for a generation request.

    Args:
        request: Generation request

    Returns:
        Prompt text
    """
    prompt = f"Task: {request.instruction}\n\n"

    if request.context:
        prompt += f"Context:\n{request.context}\n\n"

    if request.files:
        prompt += "Relevant files:\n" + "\n".join(request.files) + "\n\n"

    prompt += "Please generate the necessary code changes to complete this task."
    return prompt


def _extract_json(text: str) -> Optional[str]:
    """Return the outermost {...} span of text, or None if there is none."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def parse_generation_response(text: str) -> CodeGenerationResult:
    """
    Parse model output into a CodeGenerationResult.

    Structured output is a JSON object (possibly wrapped in prose or a code
    fence) carrying files and explanation. Anything that does not parse
    becomes a successful but non-actionable result holding the raw text.

    Args:
        text: Raw model output

    Returns:
        CodeGenerationResult; never raises
    """
    fallback = CodeGenerationResult(
        success=True,
        generated_code=text,
        explanation=FALLBACK_EXPLANATION,
    )

    json_str = _extract_json(text)
    if json_str is None:
        return fallback

    try:
        data = json.loads(json_str)
        if not isinstance(data, dict):
            return fallback

        files = None
        raw_files = data.get("files")
        if isinstance(raw_files, list):
            files = [
                FileChange(
                    path=entry["path"],
                    content=entry.get("content") or "",
                    action=entry.get("action", "modify"),
                )
                for entry in raw_files
            ]
    except (json.JSONDecodeError, KeyError, TypeError, AttributeError, ValueError) as e:
        print(f"Warning: Failed to parse generation response as JSON, using raw text ({e})")
        return fallback

    return CodeGenerationResult(
        success=data.get("success") is not False,
        files=files,
        explanation=data.get("explanation"),
        generated_code=data.get("code") or text,
        error=data.get("error"),
    )


class CodeGenerator:
    """Generate changesets with Claude."""

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: Optional[float] = None,
        client: Optional[anthropic.Anthropic] = None,
    ):
        """
        Initialize the generator.

        Args:
            api_key: Anthropic API key
            model: Model name
            max_tokens: Response token budget
            timeout: Request timeout in seconds
            client: Optional preconfigured client
        """
        self.model = model
        self.max_tokens = max_tokens
        if client is None:
            kwargs = {"api_key": api_key}
            if timeout is not None:
                kwargs["timeout"] = timeout
            client = anthropic.Anthropic(**kwargs)
        self.client = client

    def generate(self, request: CodeGenerationRequest) -> CodeGenerationResult:
        """
        Generate code for a request.

        Args:
            request: Generation request

        Returns:
            CodeGenerationResult; API failures come back as success=False
        """
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=build_system_prompt(request.task_type),
                messages=[{"role": "user", "content": build_user_prompt(request)}],
            )
        except anthropic.APIError as e:
            print(f"ERROR: Code generation request failed: {e}")
            return CodeGenerationResult(success=False, error=str(e))

        response_text = ""
        for block in message.content:
            if getattr(block, "type", None) == "text":
                response_text += block.text

        if not response_text:
            return CodeGenerationResult(success=False, error="Unexpected response type from model")

        return parse_generation_response(response_text)
