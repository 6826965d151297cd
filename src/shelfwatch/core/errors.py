"""订阅源失败分类与面向用户的提示文案."""

from dataclasses import dataclass


class FailureCode:
    """失败分类码，在出错位置直接确定，不从错误信息反推."""

    TIMEOUT = "TIMEOUT"
    NETWORK = "NETWORK"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    SERVER_ERROR = "SERVER_ERROR"
    NOT_FEED = "NOT_FEED"
    PARSE_ERROR = "PARSE_ERROR"
    UNKNOWN = "UNKNOWN"


# 可重试：进入 BACKOFF，连续达到阈值后升级为 FAILED
SOFT_FAILURES = frozenset(
    {
        FailureCode.TIMEOUT,
        FailureCode.NETWORK,
        FailureCode.RATE_LIMITED,
        FailureCode.SERVER_ERROR,
        FailureCode.UNKNOWN,
    }
)

# 不可重试：立即 FAILED，需要用户处理
HARD_FAILURES = frozenset(
    {
        FailureCode.UNAUTHORIZED,
        FailureCode.NOT_FOUND,
        FailureCode.NOT_FEED,
        FailureCode.PARSE_ERROR,
    }
)


def is_soft(code: str) -> bool:
    """是否为可自动重试的失败."""
    return code not in HARD_FAILURES


def classify_http_status(status_code: int) -> str | None:
    """HTTP 状态码 -> 失败分类码，成功或 304 返回 None."""
    if status_code < 400:
        return None
    if status_code in (401, 403):
        return FailureCode.UNAUTHORIZED
    if status_code in (404, 410):
        return FailureCode.NOT_FOUND
    if status_code == 429:
        return FailureCode.RATE_LIMITED
    if status_code >= 500:
        return FailureCode.SERVER_ERROR
    return FailureCode.UNKNOWN


class IngestError(Exception):
    """带分类码的入库错误."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        http_status: int | None = None,
        retry_after_seconds: float | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.retry_after_seconds = retry_after_seconds


@dataclass(frozen=True)
class FailureCopy:
    """面向用户的失败提示."""

    title: str
    body: str
    action: str | None
    show_retry: bool


FAILURE_COPY: dict[str, FailureCopy] = {
    FailureCode.TIMEOUT: FailureCopy(
        title="This is taking too long",
        body="We couldn't reach this source in time.",
        action="We'll retry automatically. You can also try again now.",
        show_retry=True,
    ),
    FailureCode.NETWORK: FailureCopy(
        title="We couldn't reach this source",
        body="The site didn't respond when we tried to check it.",
        action="We'll retry automatically, or you can try again later.",
        show_retry=True,
    ),
    FailureCode.UNAUTHORIZED: FailureCopy(
        title="This feed isn't public",
        body="We can't read this feed without permission.",
        action="Make sure the profile or shelf is public on Goodreads.",
        show_retry=True,
    ),
    FailureCode.NOT_FOUND: FailureCopy(
        title="This feed doesn't exist anymore",
        body="The address didn't lead to a feed.",
        action="Check the link, or remove this source and add it again.",
        show_retry=True,
    ),
    FailureCode.RATE_LIMITED: FailureCopy(
        title="Goodreads asked us to slow down",
        body="We hit a temporary limit while checking this feed.",
        action="We'll retry automatically later. No action needed.",
        show_retry=False,
    ),
    FailureCode.SERVER_ERROR: FailureCopy(
        title="The site is having trouble",
        body="The feed's server returned an error.",
        action="We'll retry automatically later.",
        show_retry=True,
    ),
    FailureCode.NOT_FEED: FailureCopy(
        title="We couldn't find a feed here",
        body="This page doesn't expose a readable feed, so we can't watch it for new books.",
        action="If this is Goodreads, link to a profile or shelf, not a single book.",
        show_retry=False,
    ),
    FailureCode.PARSE_ERROR: FailureCopy(
        title="We couldn't read this feed",
        body="The feed exists, but we couldn't understand its format.",
        action="Try a different link, or contact support if this keeps happening.",
        show_retry=True,
    ),
    FailureCode.UNKNOWN: FailureCopy(
        title="We couldn't check this source",
        body="Something unexpected happened while checking this feed.",
        action="We'll retry automatically later.",
        show_retry=True,
    ),
}


def get_failure_copy(code: str | None) -> FailureCopy | None:
    """按分类码获取提示文案."""
    if code is None:
        return None
    return FAILURE_COPY.get(code, FAILURE_COPY[FailureCode.UNKNOWN])
