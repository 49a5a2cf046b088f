"""Sentry walkthrough: initialise the SDK, add context, capture an error.

Set ``GUIDE_SENTRY_DSN`` first; without it the SDK stays disabled.

Usage:
    GUIDE_SENTRY_DSN=https://key@o0.ingest.sentry.io/0 python examples/sentry_capture.py
"""

import sentry_sdk

from guide_common.logging import configure_logging
from monitoring import breadcrumb, capture_with_context, init_sentry, set_user, tag_request


def charge(card_number: str, amount: float) -> None:
    raise RuntimeError(f"card declined for {amount}")


def main() -> None:
    configure_logging("INFO", "console")
    if not init_sentry():
        print("GUIDE_SENTRY_DSN is not set; nothing will be sent")
        return

    set_user("42", email="ada@example.com")
    tag_request(feature="checkout")
    breadcrumb("cart loaded", category="checkout", items=3)
    try:
        charge("4111111111111111", 19.99)
    except RuntimeError as exc:
        # card_number is scrubbed by before_send.
        event_id = capture_with_context(exc, tags={"payment": "card"}, card_number="4111111111111111")
        print("sent event", event_id)
    sentry_sdk.flush()


if __name__ == "__main__":
    main()
