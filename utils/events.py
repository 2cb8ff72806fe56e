"""
Lifecycle events.

Models send these signals after a transition has been committed. Delivery
(mail, push, in-app) is done by whoever connects a receiver; nothing in the
engine waits on it.

Usage:
    from utils.events import reservation_cancelled

    @reservation_cancelled.connect
    def on_cancel(sender, **data):
        ...
"""

import logging

from blinker import Namespace

logger = logging.getLogger(__name__)

lending_signals = Namespace()

reservation_confirmed = lending_signals.signal('reservation-confirmed')
reservation_checked_out = lending_signals.signal('reservation-checked-out')
reservation_returned = lending_signals.signal('reservation-returned')
reservation_cancelled = lending_signals.signal('reservation-cancelled')
reservation_refunded = lending_signals.signal('reservation-refunded')
reservation_extended = lending_signals.signal('reservation-extended')
maintenance_created = lending_signals.signal('maintenance-created')
maintenance_ended = lending_signals.signal('maintenance-ended')


def emit(signal, sender: str, **data) -> None:
    """
    Send a signal; a failing receiver is logged, never propagated.

    The transition it reports is already committed, so a receiver error
    must not turn a successful operation into a failed response.
    """
    try:
        signal.send(sender, **data)
    except Exception:
        logger.exception("Receiver failed for event %s", signal.name)
