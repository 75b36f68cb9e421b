"""
broadcaster.py
Fan-out of each DataPoint to the registered subscribers.
"""

import itertools
import threading
import time


class Subscription:
    """Opaque handle returned by subscribe()."""

    def __init__(self, handle_id, callback):
        self.handle_id = handle_id
        self.callback = callback
        self.active = True

    def __repr__(self):
        state = 'active' if self.active else 'cancelled'
        return f"Subscription({self.handle_id}, {state})"


class TelemetryBroadcaster:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions = []
        self._ids = itertools.count(1)
        self._last_error_print = 0.0

    def __len__(self):
        with self._lock:
            return len(self._subscriptions)

    def subscribe(self, callback):
        if not callable(callback):
            raise TypeError("callback must be callable")
        with self._lock:
            subscription = Subscription(next(self._ids), callback)
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription):
        """Returns True if the subscription was registered."""
        if not isinstance(subscription, Subscription):
            return False
        with self._lock:
            try:
                self._subscriptions.remove(subscription)
            except ValueError:
                return False
            subscription.active = False
        return True

    def clear(self):
        with self._lock:
            for subscription in self._subscriptions:
                subscription.active = False
            self._subscriptions = []

    def publish(self, point, is_current=None):
        """
        Deliver point to a snapshot of the subscribers taken under the lock.
        Args:
            point: Value handed to each callback.
            is_current: Optional predicate checked before each delivery; once it
                returns False the rest of the snapshot is dropped.
        """
        with self._lock:
            snapshot = tuple(self._subscriptions)
        for subscription in snapshot:
            # Cancelled earlier in this same dispatch
            if not subscription.active:
                continue
            if is_current is not None and not is_current():
                break
            try:
                subscription.callback(point)
            except Exception as e:
                # A failing subscriber must not starve the others.
                now = time.time()
                if now - self._last_error_print > 1.0:
                    print(f"[BROADCAST] Subscriber {subscription.handle_id} failed: {e!r}")
                    self._last_error_print = now
        return len(snapshot)
