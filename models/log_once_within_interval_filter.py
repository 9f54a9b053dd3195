from datetime import datetime, timedelta
from difflib import SequenceMatcher
import logging


class LogOnceWithinIntervalFilter(logging.Filter):
    """Logs each unique message only once within a specified time interval if they are similar."""

    def __init__(self, similarity_threshold=0.95, interval_seconds=120, clock=datetime.now):
        super().__init__()
        self.similarity_threshold = similarity_threshold
        self.interval = timedelta(seconds=interval_seconds)
        self.clock = clock
        self.last_logged_message = None
        self.last_logged_time = None
        self.suppressed_count = 0

    # log filter for similar repetitive messages to suppress
    def filter(self, record):
        now = self.clock()
        message = record.getMessage()

        if self.last_logged_message is not None:
            time_since_last_logged = now - self.last_logged_time
            if time_since_last_logged < self.interval:
                similarity = SequenceMatcher(None, self.last_logged_message, message).ratio()
                if similarity > self.similarity_threshold:
                    self.suppressed_count += 1
                    return False

        self.last_logged_message = message
        self.last_logged_time = now
        return True
