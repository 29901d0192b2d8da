"""
STClient.py — Survey Tool network collaborator for the forum engine.

Fetching (async, httpx):
    GET {base}/SurveyAjax?s=SESSION&what=forum_fetch&xpath=0&_=LOCALE
    -> {"ret": [post, post, ...]}  newest first
    -> {"err": "..."}              on failure

Posting (sync, requests):
    POST {base}/SurveyAjax  what=forum_post, _, replyTo, xpath, subj, text, forumStatus
    -> {"ret": [...], "postId": N}

Unlike the engine, which never raises into the render path, this module
raises: transport and server failures are for the host to show the user.
No retries are done here.

SSL verification is only disabled when a proxy is configured (proxies can
break the cert chain); direct requests use proper TLS verification.
"""

import asyncio
import json
import logging

import httpx
import requests

import st_config
from STExceptions import (
    STParseError,
    STServerError,
    STTimeoutError,
    STTransportError,
)

log = logging.getLogger("stforum.client")

_DEFAULT_HEADERS = {
    "User-Agent": "stforum/1.0",
    "Accept":     "application/json, text/plain, */*",
}

_DEFAULT_TIMEOUT = httpx.Timeout(connect=8.0, read=15.0, write=8.0, pool=5.0)

_SUBMIT_TIMEOUT = (8, 15)  # (connect, read) seconds


def _decode(status: int, body: bytes, operation: str) -> dict:
    if status != 200:
        log.warning(f"SurveyAjax {operation} returned HTTP {status}")
        raise STServerError(f"SurveyAjax {operation} returned HTTP {status}", status_code=status, raw=body)
    try:
        data = json.loads(body)
    except ValueError:
        log.warning(f"SurveyAjax {operation} returned non-JSON: {body[:200]!r}")
        raise STParseError(f"SurveyAjax {operation} returned non-JSON", status_code=status, raw=body) from None
    if not isinstance(data, dict):
        raise STParseError(f"SurveyAjax {operation} returned {type(data).__name__}, expected object",
                           status_code=status, raw=body)
    if data.get("err"):
        log.warning(f"SurveyAjax {operation} error: {data['err']}")
        raise STServerError(str(data["err"]), status_code=status, raw=body)
    return data


class ForumClient:
    """
    Async Survey Tool forum client.

    Args:
        base_url:   Survey Tool root, e.g. "https://st.unicode.org/cldr-apps".
        session_id: Survey Tool session id (the "s" parameter).
        proxy:      Optional HTTP proxy URL.
        timeout:    Overall per-request timeout in seconds.
        transport:  Optional httpx transport (tests pass httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str = st_config.ST_BASE_URL,
        session_id: str = st_config.ST_SESSION_ID,
        proxy: str | None = st_config.ST_PROXY,
        timeout: float = st_config.ST_FETCH_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url   = base_url.rstrip("/")
        self.session_id = session_id
        self.proxy      = proxy
        self.timeout    = timeout
        self._transport = transport

    @property
    def ajax_url(self) -> str:
        return f"{self.base_url}/SurveyAjax"

    def _http_client(self) -> httpx.AsyncClient:
        kwargs = {
            "timeout":          _DEFAULT_TIMEOUT,
            "verify":           self.proxy is None,
            "headers":          _DEFAULT_HEADERS,
            "follow_redirects": True,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        elif self.proxy:
            kwargs["proxy"] = self.proxy
        return httpx.AsyncClient(**kwargs)

    # ── Fetch ──────────────────────────────────────────────────────────────────

    async def fetch_posts(self, locale: str) -> list[dict]:
        """
        All forum posts for locale, newest first, as raw wire dicts.

        Raises:
            STTimeoutError:   no answer within self.timeout.
            STTransportError: connect/proxy/other httpx failure.
            STServerError:    HTTP != 200 or {"err": ...}.
            STParseError:     body is not JSON or has no "ret" list.
        """
        params = {"s": self.session_id, "what": "forum_fetch", "xpath": "0", "_": locale}
        log.debug(f"SurveyAjax forum_fetch locale={locale}")

        async def _do_get():
            async with self._http_client() as client:
                return await client.get(self.ajax_url, params=params)

        try:
            r = await asyncio.wait_for(_do_get(), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            log.warning(f"SurveyAjax forum_fetch timed out after {self.timeout}s")
            raise STTimeoutError(timeout=self.timeout) from None
        except httpx.ProxyError as e:
            log.warning(f"SurveyAjax forum_fetch proxy error: {e}")
            raise STTransportError(f"Proxy error: {e}") from e
        except httpx.ConnectError as e:
            log.warning(f"SurveyAjax forum_fetch connect error: {e}")
            raise STTransportError(f"Connect error: {e}") from e
        except httpx.HTTPError as e:
            log.warning(f"SurveyAjax forum_fetch failed: {e}")
            raise STTransportError(f"Request failed: {e}") from e

        data = _decode(r.status_code, r.content, "forum_fetch")
        posts = data.get("ret")
        if not isinstance(posts, list):
            raise STParseError("forum_fetch response has no 'ret' list", status_code=r.status_code, raw=r.content)
        log.debug(f"SurveyAjax forum_fetch → {len(posts)} posts for {locale}")
        return posts

    def fetch_posts_sync(self, locale: str) -> list[dict]:
        """
        Synchronous wrapper around fetch_posts(). Safe to call from non-async
        code (the CLI).
        """
        try:
            loop = asyncio.get_event_loop()
            if loop.is_running():
                # Called from within a running loop; run in a fresh loop in a thread
                import concurrent.futures
                with concurrent.futures.ThreadPoolExecutor(max_workers=1) as ex:
                    future = ex.submit(asyncio.run, self.fetch_posts(locale))
                    return future.result()
            return loop.run_until_complete(self.fetch_posts(locale))
        except RuntimeError:
            return asyncio.run(self.fetch_posts(locale))

    # ── Submit ─────────────────────────────────────────────────────────────────

    def submit_post(self, draft, status: str, text: str) -> dict:
        """
        Send a new post or reply.

        Args:
            draft:  STPolicy.PostDraft (locale, xpath, reply_to, subject).
            status: Chosen forum status; must be one of draft.status_options.
            text:   Non-empty body.

        Returns:
            The decoded response: {"ret": [...], "postId": N}.

        Raises:
            STValidationError: bad status or empty text (nothing is sent).
            STTransportError / STTimeoutError / STServerError / STParseError.
        """
        draft.validate(status, text)
        post_data = {
            "s":           self.session_id,
            "_":           draft.locale,
            "replyTo":     draft.reply_to,
            "xpath":       draft.xpath,
            "text":        text,
            "subj":        draft.subject,
            "forumStatus": status,
            "what":        "forum_post",
        }
        proxies = {"http": self.proxy, "https": self.proxy} if self.proxy else None
        try:
            r = requests.post(
                self.ajax_url,
                data=post_data,
                headers=_DEFAULT_HEADERS,
                timeout=_SUBMIT_TIMEOUT,
                proxies=proxies,
            )
        except requests.Timeout:
            log.warning("SurveyAjax forum_post timed out")
            raise STTimeoutError(timeout=float(sum(_SUBMIT_TIMEOUT))) from None
        except requests.RequestException as e:
            log.warning(f"SurveyAjax forum_post error: {e}")
            raise STTransportError(f"Request failed: {e}") from e

        data = _decode(r.status_code, r.content, "forum_post")
        if not data.get("ret"):
            log.info(f"Post #{data.get('postId', '?')} was added but could not be shown")
        return data

