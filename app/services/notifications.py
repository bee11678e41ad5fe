"""
Notifications — Slack webhook integration for ledger events that need a human.

Notification failure never blocks the triggering operation.
"""
import logging
import requests

from app.config import SLACK_WEBHOOK_URL

logger = logging.getLogger('services.notifications')


def _post(blocks, what):
    if not SLACK_WEBHOOK_URL:
        return False
    try:
        resp = requests.post(SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)
        resp.raise_for_status()
        logger.info("%s notification sent", what)
        return True
    except requests.RequestException:
        logger.error("Failed to send %s notification", what, exc_info=True)
        return False


def notify_unassigned_appointments(count, appointment_id=None):
    """Alert that appointments are waiting for a closer (no eligible closer)."""
    if not count:
        return False

    text = f"*{count}* appointment(s) have no closer — no active, approved closer was available."
    if appointment_id:
        text += f"\nLatest: `{appointment_id}`"

    blocks = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "Unassigned appointments"},
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": text},
        },
        {
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": "Run the reconciliation pass once a closer is approved."}],
        },
    ]
    return _post(blocks, 'unassigned appointments')


def notify_commissions_released(count, amount):
    """Post the release sweep summary. Silent when nothing moved."""
    if not count:
        return False

    blocks = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "Affiliate commissions released"},
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Released:* {count}"},
                {"type": "mrkdwn", "text": f"*Amount:* ${float(amount):,.2f}"},
            ],
        },
    ]
    return _post(blocks, 'commission release')


def notify_counter_drift(entity, entity_id, drift):
    """Report cached counters that disagreed with a recomputation."""
    if not drift:
        return False

    lines = '\n'.join(
        f"• `{field}`: cached {values['cached']} → recomputed {values['recomputed']}"
        for field, values in sorted(drift.items())
    )
    blocks = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": f"Counter drift corrected — {entity}"},
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"`{entity_id}`\n{lines}"},
        },
    ]
    return _post(blocks, f'{entity} drift')
