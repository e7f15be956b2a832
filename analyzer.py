"""Claude API integration for question classification and deep diagnosis."""

import base64
import json
import logging
import time
from typing import Any, Dict, List, Optional

import anthropic

import config
from models import AIResult, Classification, Diagnosis, Subject, normalize_category

logger = logging.getLogger(__name__)

CLASSIFY_PROMPT = """你是一个山东事业编统考（职测/综应）的辅导专家。请分析这张错题截图。

请返回一个纯JSON格式的回答，不要包含markdown标记。JSON字段如下：
{
  "subject": "职测" 或 "综应",
  "category": "属于哪个大类（例如：言语理解与表达, 数量关系, 判断推理, 资料分析, 常识判断, 综合应用-案例分析, 综合应用-文书写作）",
  "subCategory": "细分题型（例如：主旨概括, 逻辑填空, 图形推理, 增长率计算等）",
  "questionText": "提取题干主要文字",
  "analysis": "分析题目的考点、难点，以及容易做错的陷阱。",
  "solution": "详细的正确解析思路。"
}"""

DIAGNOSIS_SYSTEM_PROMPT = (
    "你是一名顶级公考辅导专家（山东事业编统考方向）。"
    "请根据学员提供的【学员思路】与【正确解析】进行差异对比，精准诊断痛点。"
)

MISSING_THINKING = "（学员未提供详细思路，请基于该题型的常见误区进行推断，分析学员可能的思维路径）"
MISSING_RESOLUTION = "（请结合图片内容自行推导正确逻辑）"

DIAGNOSIS_FORMAT = """请返回纯JSON格式，确保字段内容详实、具体、有针对性：
{
  "analysis": "具体指出学员的思维误区，例如逻辑谬误（如‘偷换概念’）、知识盲区（如‘混淆增长率与增长量’）或解题习惯问题（如‘未看完选项即作答’）。必须包含‘学员错在...而正确逻辑是...’的对比。",
  "refinedSubCategory": "更精准的考点标签（例如将‘逻辑填空’细化为‘逻辑填空-对应关系-解释说明’）。若当前标签已足够精准，返回空字符串。",
  "suggestion": "极具操作性的行动指南，拒绝‘多做题’等空话。例如：‘每天默写一次[资料分析速算公式]’。"
}"""


class AnalysisError(Exception):
    """Raised internally when an analysis call or its parsing fails."""


def image_data_url(data: bytes, media_type: str = config.DEFAULT_MEDIA_TYPE) -> str:
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


def split_data_url(url: str) -> Optional[Dict[str, str]]:
    """Return ``{"media_type", "data"}`` for a base64 data URL, else None."""
    if not url.startswith("data:") or ";base64," not in url:
        return None
    header, data = url[len("data:"):].split(";base64,", 1)
    return {"media_type": header or config.DEFAULT_MEDIA_TYPE, "data": data}


def strip_code_fence(text: str) -> str:
    """Remove markdown code fences around a JSON answer."""
    text = text.strip()
    if "```" in text:
        lines = [l for l in text.split("\n") if not l.strip().startswith("```")]
        text = "\n".join(lines).strip()
    return text


def parse_json_object(text: str) -> Dict[str, Any]:
    try:
        data = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise AnalysisError(f"Invalid JSON response: {e}") from e
    if not isinstance(data, dict):
        raise AnalysisError("Response is not a JSON object")
    return data


def _text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


def validate_classification(data: Dict[str, Any]) -> Classification:
    """Map a raw classification answer onto the known subjects and categories.

    Anything but 综应 counts as 职测, and a category outside the subject's
    set falls back to that subject's first category.
    """
    subject = Subject.ZONGYING if data.get("subject") == Subject.ZONGYING.value else Subject.ZHICE
    return Classification(
        subject=subject,
        category=normalize_category(subject, data.get("category")),
        sub_category=_text(data, "subCategory"),
        question_text=_text(data, "questionText"),
        analysis=_text(data, "analysis"),
        solution=_text(data, "solution"),
    )


class QuestionAnalyzer:
    def __init__(self, client=None, api_key: Optional[str] = None):
        api_key = api_key if api_key is not None else config.ANTHROPIC_API_KEY
        if client is None and api_key:
            client = anthropic.Anthropic(api_key=api_key)
        self.client = client
        self._last_request_time: float = 0

    @property
    def available(self) -> bool:
        return self.client is not None

    def _rate_limit(self) -> None:
        elapsed = time.time() - self._last_request_time
        if elapsed < config.RATE_LIMIT_SECONDS:
            time.sleep(config.RATE_LIMIT_SECONDS - elapsed)
        self._last_request_time = time.time()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def classify_image(
        self, data: bytes, media_type: str = config.DEFAULT_MEDIA_TYPE
    ) -> AIResult[Classification]:
        """Classify a screenshot of a wrong question."""
        content = [
            _image_block(media_type, base64.b64encode(data).decode("ascii")),
            {"type": "text", "text": CLASSIFY_PROMPT},
        ]
        try:
            text = self._call_api(None, content)
        except AnalysisError as e:
            logger.warning(f"Classification failed: {e}")
            return AIResult.failure("AI分析失败，请手动输入。")

        try:
            result = validate_classification(parse_json_object(text))
        except AnalysisError as e:
            logger.warning(f"Unparseable classification: {e}")
            return AIResult.failure("AI返回内容无法解析，请手动输入。", raw_text=text)
        return AIResult.success(result, raw_text=text)

    def diagnose(
        self,
        subject: str,
        category: str,
        sub_category: str,
        my_thinking: str,
        correct_resolution: str,
        image_url: str = "",
    ) -> AIResult[Diagnosis]:
        """Compare the learner's reasoning with the correct resolution."""
        prompt = (
            f"【基本信息】\n"
            f"科目：{Subject(subject).value}\n"
            f"大类：{category}\n"
            f"细分题型：{sub_category}\n\n"
            f"【学员思路】\n{my_thinking or MISSING_THINKING}\n\n"
            f"【正确解析】\n{correct_resolution or MISSING_RESOLUTION}\n\n"
            f"{DIAGNOSIS_FORMAT}"
        )
        content: List[Dict[str, Any]] = []
        image = split_data_url(image_url) if image_url else None
        if image:
            content.append(_image_block(image["media_type"], image["data"]))
        content.append({"type": "text", "text": prompt})

        try:
            text = self._call_api(DIAGNOSIS_SYSTEM_PROMPT, content)
            data = parse_json_object(text)
        except AnalysisError as e:
            logger.warning(f"Diagnosis failed: {e}")
            return AIResult.failure("深度分析失败，请稍后重试。")

        return AIResult.success(
            Diagnosis(
                analysis=_text(data, "analysis"),
                refined_sub_category=_text(data, "refinedSubCategory"),
                suggestion=_text(data, "suggestion"),
            ),
            raw_text=text,
        )

    # ------------------------------------------------------------------
    # API call with retries
    # ------------------------------------------------------------------

    def _call_api(
        self, system_prompt: Optional[str], content: List[Dict[str, Any]], max_tokens: int = 0
    ) -> str:
        """Make API call with retry logic for transient errors."""
        if self.client is None:
            raise AnalysisError("API Key missing")
        if not max_tokens:
            max_tokens = config.MAX_TOKENS

        request: Dict[str, Any] = {
            "model": config.MODEL,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": content}],
        }
        if system_prompt:
            request["system"] = system_prompt

        last_error = None
        for attempt in range(config.MAX_RETRIES):
            self._rate_limit()
            try:
                response = self.client.messages.create(**request)
                return _response_text(response)

            except (
                anthropic.RateLimitError,
                anthropic.APIConnectionError,
                anthropic.InternalServerError,
            ) as e:
                last_error = e
                wait = (2 ** attempt) * 2
                logger.info(f"Transient API error ({type(e).__name__}), retrying in {wait}s")
                time.sleep(wait)
            except anthropic.AuthenticationError as e:
                raise AnalysisError(
                    "Invalid API key. Check your ANTHROPIC_API_KEY in .env"
                ) from e
            except anthropic.BadRequestError as e:
                raise AnalysisError(f"Bad request: {e}") from e
            except anthropic.APIStatusError as e:
                raise AnalysisError(f"API error {e.status_code}: {e}") from e
            except anthropic.APIError as e:
                raise AnalysisError(f"API error: {e}") from e

        raise AnalysisError(
            f"Failed after {config.MAX_RETRIES} retries: {last_error}"
        )


def _response_text(response: Any) -> str:
    """Return the first text block of a Messages API response."""
    for block in getattr(response, "content", None) or []:
        if getattr(block, "type", "text") == "text" and isinstance(getattr(block, "text", None), str):
            return block.text
    raise AnalysisError("Empty response from API")


def _image_block(media_type: str, data: str) -> Dict[str, Any]:
    return {
        "type": "image",
        "source": {"type": "base64", "media_type": media_type, "data": data},
    }
