"""
Click tracking for affiliate links.
"""
import logging

from app.database import get_session
from app.models.affiliate import Affiliate, AffiliateClick
from app.services.attribution import resolve_affiliate
from app.services.validation import utcnow

logger = logging.getLogger('services.tracking')


def record_click(code, now=None) -> dict:
    """
    Log a click for the affiliate behind `code`.

    Unknown codes and inactive affiliates are organic traffic: nothing is
    written and {'tracked': False} is returned.
    """
    session = get_session()
    try:
        affiliate = resolve_affiliate(session, code)
        if affiliate is None or not affiliate.is_active:
            return {'tracked': False}

        session.add(AffiliateClick(
            affiliate_id=affiliate.id,
            referral_code=affiliate.referral_code,
            created_at=now or utcnow(),
        ))
        affiliate.total_clicks = Affiliate.total_clicks + 1
        session.commit()
        logger.debug("Click tracked", extra={'affiliate_id': affiliate.id})
        return {'tracked': True, 'affiliate_id': affiliate.id, 'referral_code': affiliate.referral_code}
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
