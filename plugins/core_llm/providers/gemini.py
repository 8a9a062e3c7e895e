# plugins/core_llm/providers/gemini.py

import asyncio
from typing import Any, List, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from google.generativeai import types as generation_types

from .base import LLMProvider
from ..contracts import (
    LLMResponse,
    LLMError,
    LLMResponseStatus,
    LLMErrorType,
)

# generate() 接受并转交给 generation_config 的参数
GENERATION_CONFIG_KEYS = ("temperature", "top_p", "top_k", "max_output_tokens", "response_mime_type")


def _image_bytes(image: Any) -> Optional[bytes]:
    # 不同版本的 SDK 把原始字节放在不同的属性上
    for attr in ("image_bytes", "_image_bytes"):
        data = getattr(image, attr, None)
        if data:
            return data
    return None


class GeminiProvider(LLMProvider):
    """
    针对 Google Gemini / Imagen API 的 LLMProvider 实现。
    """

    async def generate(
        self,
        *,
        prompt: str,
        model_name: str,
        api_key: str,
        system_instruction: Optional[str] = None,
        **kwargs: Any
    ) -> LLMResponse:
        genai.configure(api_key=api_key)

        generation_config_params = {k: kwargs.get(k) for k in GENERATION_CONFIG_KEYS}
        # 移除值为None的参数
        generation_config_params = {k: v for k, v in generation_config_params.items() if v is not None}
        generation_config_params["candidate_count"] = 1

        model = genai.GenerativeModel(model_name, system_instruction=system_instruction)

        try:
            response: generation_types.GenerateContentResponse = await model.generate_content_async(
                contents=prompt,
                generation_config=generation_config_params
            )
        except generation_types.StopCandidateException as e:
            error = LLMError(error_type=LLMErrorType.INVALID_REQUEST_ERROR, message=f"Generation stopped due to safety settings: {e}", is_retryable=False)
            return LLMResponse(status=LLMResponseStatus.FILTERED, model_name=model_name, error_details=error)

        if not response.parts:
            if response.prompt_feedback.block_reason:
                error_message = f"Request blocked due to {response.prompt_feedback.block_reason.name}"
                error = LLMError(error_type=LLMErrorType.INVALID_REQUEST_ERROR, message=error_message, is_retryable=False)
                return LLMResponse(status=LLMResponseStatus.FILTERED, model_name=model_name, error_details=error)
            error = LLMError(error_type=LLMErrorType.PROVIDER_ERROR, message="Provider returned an empty response without a clear reason.", is_retryable=True)
            return LLMResponse(status=LLMResponseStatus.ERROR, model_name=model_name, error_details=error)

        usage = {
            "prompt_tokens": response.usage_metadata.prompt_token_count,
            "completion_tokens": response.usage_metadata.candidates_token_count,
            "total_tokens": response.usage_metadata.total_token_count,
        }
        return LLMResponse(status=LLMResponseStatus.SUCCESS, content=response.text, model_name=model_name, usage=usage)

    async def generate_image(
        self,
        *,
        prompt: str,
        model_name: str,
        api_key: str,
        **kwargs: Any
    ) -> LLMResponse:
        genai.configure(api_key=api_key)

        # 图片模型只在较新的 SDK 中提供
        image_model_cls = getattr(genai, "ImageGenerationModel", None)
        if image_model_cls is None:
            error = LLMError(
                error_type=LLMErrorType.INVALID_REQUEST_ERROR,
                message="The installed google-generativeai SDK does not support image generation.",
                is_retryable=False,
            )
            return LLMResponse(status=LLMResponseStatus.ERROR, model_name=model_name, error_details=error)

        model = image_model_cls(model_name)
        result = await asyncio.to_thread(
            model.generate_images,
            prompt=prompt,
            number_of_images=kwargs.get("number_of_images", 1),
            aspect_ratio=kwargs.get("aspect_ratio", "1:1"),
        )

        images: List[bytes] = []
        for image in getattr(result, "images", None) or []:
            data = _image_bytes(image)
            if data:
                images.append(data)
        return LLMResponse(status=LLMResponseStatus.SUCCESS, images=images, model_name=model_name)

    def translate_error(self, ex: Exception) -> LLMError:
        error_details = {"provider": "gemini", "exception": type(ex).__name__, "message": str(ex)}
        if isinstance(ex, google_exceptions.PermissionDenied):
            return LLMError(error_type=LLMErrorType.AUTHENTICATION_ERROR, message="Invalid API key or insufficient permissions.", is_retryable=False, provider_details=error_details)
        if isinstance(ex, google_exceptions.ResourceExhausted):
            return LLMError(error_type=LLMErrorType.RATE_LIMIT_ERROR, message="Rate limit exceeded. Please try again later.", is_retryable=False, provider_details=error_details)
        if isinstance(ex, google_exceptions.InvalidArgument):
            if "API key not valid" in str(ex):
                return LLMError(error_type=LLMErrorType.AUTHENTICATION_ERROR, message=f"The provided API key is invalid. Details: {ex}", is_retryable=False, provider_details=error_details)
            return LLMError(error_type=LLMErrorType.INVALID_REQUEST_ERROR, message=f"Invalid argument provided to the API. Check model name and parameters. Details: {ex}", is_retryable=False, provider_details=error_details)
        if isinstance(ex, (google_exceptions.ServiceUnavailable, google_exceptions.DeadlineExceeded)):
            return LLMError(error_type=LLMErrorType.PROVIDER_ERROR, message="The service is temporarily unavailable or the request timed out. Please try again.", is_retryable=True, provider_details=error_details)
        if isinstance(ex, google_exceptions.GoogleAPICallError):
            return LLMError(error_type=LLMErrorType.NETWORK_ERROR, message=f"A network-level error occurred while communicating with Google API: {ex}", is_retryable=True, provider_details=error_details)
        return LLMError(error_type=LLMErrorType.UNKNOWN_ERROR, message=f"An unknown error occurred with the Gemini provider: {ex}", is_retryable=False, provider_details=error_details)
