import logging
import os
import sys
from datetime import datetime

LOG_FORMAT = '%(asctime)s:%(levelname)s:%(name)s: %(message)s'

NOISY_LOGGERS = ('mysql.connector', 'sc2reader')


def configure_logging(log_dir='logs', level=logging.INFO, name='barcode_reveal'):
    """
    Console plus timestamped file logging for the process entry point.
    Returns the path of the log file.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(LOG_FORMAT)
    root = logging.getLogger()
    root.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_file_name = os.path.join(log_dir, f"{name}_{timestamp}.log")
    file_handler = logging.FileHandler(log_file_name, encoding='utf-8')
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    # Suppress noisy libraries
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return log_file_name
