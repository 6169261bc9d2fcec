"""Synchronous and asynchronous request pipelines."""

from __future__ import annotations

import dataclasses
import inspect
import json
from typing import Any

import httpx
import structlog

from .config import FetchConfig
from .exceptions import (
    FetchWrapperDecodeError,
    FetchWrapperValidationError,
    InterceptorError,
    NotOkError,
)
from .headers import merge_headers
from .interceptors import InterceptorManager, close_awaitable
from .request_options import RequestContext, RequestOptions, ResponseContext
from .retry import RetryPolicy
from .security import parse_retry_after
from .timeout import async_send_with_timeout, send_with_timeout

logger = structlog.get_logger(__name__)

JSON_CONTENT_TYPE = {"Content-Type": "application/json"}


def _resolve(override: Any, default: Any) -> Any:
    return override if override is not None else default


def _response_body(response: httpx.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    try:
        if "application/json" in content_type.lower():
            return response.json()
        return response.text or None
    except (ValueError, UnicodeDecodeError):
        return None


class _BaseFetchWrapper:
    def __init__(self, config: FetchConfig | None = None, **settings: Any) -> None:
        self.config = FetchConfig.build(config, **settings)
        self.request_interceptors: InterceptorManager[RequestContext] = InterceptorManager("request")
        self.response_interceptors: InterceptorManager[ResponseContext] = InterceptorManager("response")

    def use_request_interceptor(self, fulfilled=None, rejected=None) -> int:
        return self.request_interceptors.use(fulfilled, rejected)

    def use_response_interceptor(self, fulfilled=None, rejected=None) -> int:
        return self.response_interceptors.use(fulfilled, rejected)

    @staticmethod
    def _options(options: RequestOptions | None) -> RequestOptions:
        return options or RequestOptions()

    def _target(self, resource: str, options: RequestOptions) -> str:
        return _resolve(options.base_url, self.config.base_url) + resource

    def _build_request_timeout(self, options: RequestOptions) -> float:
        timeout = _resolve(options.timeout, self.config.timeout)
        if timeout <= 0:
            raise FetchWrapperValidationError("timeout must be greater than 0")
        return float(timeout)

    def _build_retry_policy(self, options: RequestOptions) -> RetryPolicy:
        return RetryPolicy(
            _resolve(options.retries, self.config.retries),
            _resolve(options.retry_interval, self.config.retry_interval),
        )

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        raise NotOkError(
            "Network response was not ok",
            status_code=response.status_code,
            headers=response.headers,
            body=_response_body(response),
            response=response,
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
        )

    @staticmethod
    def _parse_response(response: Any, auto_parse: bool) -> Any:
        if not auto_parse:
            return response
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise FetchWrapperDecodeError(
                f"Response body is not valid JSON: {exc}",
                status_code=response.status_code,
                response=response,
                cause=exc,
            ) from exc

    @staticmethod
    def _original_error(error: Exception) -> BaseException:
        if isinstance(error, InterceptorError) and error.cause is not None:
            return error.cause
        return error

    def _recovery_handler(self, error: Exception):
        handler = self.response_interceptors.recovery_handler()
        if handler is not None:
            logger.warning(
                "Recovering failed request through response interceptor",
                error=str(error),
                error_type=type(error).__name__,
            )
        return handler

    @staticmethod
    def _body_options(method: str, body: Any, options: RequestOptions | None) -> RequestOptions:
        options = options or RequestOptions()
        headers = merge_headers(JSON_CONTENT_TYPE, options.headers)
        json_body = options.json if options.json is not None else body
        return dataclasses.replace(options, method=method, headers=headers, json=json_body)


class FetchWrapper(_BaseFetchWrapper):
    """Synchronous pipeline over ``httpx.Client``."""

    def __init__(
        self,
        config: FetchConfig | None = None,
        *,
        httpx_client: httpx.Client | None = None,
        **settings: Any,
    ) -> None:
        super().__init__(config, **settings)
        self._owns_client = httpx_client is None
        self._httpx = httpx_client or httpx.Client(trust_env=False)

    def __enter__(self) -> "FetchWrapper":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._httpx.close()

    def request(self, resource: str, options: RequestOptions | None = None) -> Any:
        options = self._options(options)
        retry_on_fail = _resolve(options.retry_on_fail, self.config.retry_on_fail)
        auto_parse = _resolve(options.auto_parse_json, self.config.auto_parse_json)

        response: httpx.Response | None = None
        try:
            context = self.request_interceptors.run_handlers(RequestContext(url=resource, options=options))
            options = context.options
            response = self._dispatch(context, retry_on_fail)
            self._raise_for_status(response)
            result = self.response_interceptors.run_handlers(ResponseContext(response=response, options=options))
        except Exception as exc:
            handler = self._recovery_handler(exc)
            if handler is None:
                raise
            try:
                recovered = handler(
                    self._original_error(exc), ResponseContext(response=response, options=options)
                )
            except Exception:
                logger.error("Response interceptor recovery failed", exc_info=True)
                raise
            if inspect.isawaitable(recovered):
                close_awaitable(recovered)
                raise FetchWrapperValidationError(
                    "response rejected handler returned an awaitable; use AsyncFetchWrapper"
                ) from exc
            return recovered
        return self._parse_response(result.response, auto_parse)

    def _dispatch(self, context: RequestContext, retry_on_fail: bool) -> httpx.Response:
        options = context.options
        url = self._target(context.url, options)
        timeout = self._build_request_timeout(options)

        def attempt() -> httpx.Response:
            return send_with_timeout(
                self._httpx, url, options, timeout, default_headers=self.config.headers
            )

        if not retry_on_fail:
            return attempt()
        return self._build_retry_policy(options).run(attempt)

    def get(self, resource: str, options: RequestOptions | None = None) -> Any:
        options = dataclasses.replace(self._options(options), method="GET")
        return self.request(resource, options)

    def delete(self, resource: str, options: RequestOptions | None = None) -> Any:
        options = dataclasses.replace(self._options(options), method="DELETE")
        return self.request(resource, options)

    def post(self, resource: str, body: Any = None, options: RequestOptions | None = None) -> Any:
        return self.request(resource, self._body_options("POST", body, options))

    def put(self, resource: str, body: Any = None, options: RequestOptions | None = None) -> Any:
        return self.request(resource, self._body_options("PUT", body, options))


class AsyncFetchWrapper(_BaseFetchWrapper):
    """Asynchronous pipeline over ``httpx.AsyncClient``.

    Interceptor handlers may be plain callables or coroutine functions.
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        *,
        httpx_client: httpx.AsyncClient | None = None,
        **settings: Any,
    ) -> None:
        super().__init__(config, **settings)
        self._owns_client = httpx_client is None
        self._httpx = httpx_client or httpx.AsyncClient(trust_env=False)

    async def __aenter__(self) -> "AsyncFetchWrapper":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._httpx.aclose()

    async def request(self, resource: str, options: RequestOptions | None = None) -> Any:
        options = self._options(options)
        retry_on_fail = _resolve(options.retry_on_fail, self.config.retry_on_fail)
        auto_parse = _resolve(options.auto_parse_json, self.config.auto_parse_json)

        response: httpx.Response | None = None
        try:
            context = await self.request_interceptors.run_handlers_async(
                RequestContext(url=resource, options=options)
            )
            options = context.options
            response = await self._dispatch(context, retry_on_fail)
            self._raise_for_status(response)
            result = await self.response_interceptors.run_handlers_async(
                ResponseContext(response=response, options=options)
            )
        except Exception as exc:
            handler = self._recovery_handler(exc)
            if handler is None:
                raise
            try:
                recovered = handler(
                    self._original_error(exc), ResponseContext(response=response, options=options)
                )
                if inspect.isawaitable(recovered):
                    recovered = await recovered
            except Exception:
                logger.error("Response interceptor recovery failed", exc_info=True)
                raise
            return recovered
        return self._parse_response(result.response, auto_parse)

    async def _dispatch(self, context: RequestContext, retry_on_fail: bool) -> httpx.Response:
        options = context.options
        url = self._target(context.url, options)
        timeout = self._build_request_timeout(options)

        async def attempt() -> httpx.Response:
            return await async_send_with_timeout(
                self._httpx, url, options, timeout, default_headers=self.config.headers
            )

        if not retry_on_fail:
            return await attempt()
        return await self._build_retry_policy(options).run_async(attempt)

    async def get(self, resource: str, options: RequestOptions | None = None) -> Any:
        options = dataclasses.replace(self._options(options), method="GET")
        return await self.request(resource, options)

    async def delete(self, resource: str, options: RequestOptions | None = None) -> Any:
        options = dataclasses.replace(self._options(options), method="DELETE")
        return await self.request(resource, options)

    async def post(self, resource: str, body: Any = None, options: RequestOptions | None = None) -> Any:
        return await self.request(resource, self._body_options("POST", body, options))

    async def put(self, resource: str, body: Any = None, options: RequestOptions | None = None) -> Any:
        return await self.request(resource, self._body_options("PUT", body, options))
