import logging

import colorlog


def setup_logging(level: int = logging.WARNING) -> None:
    colorlog.basicConfig(
        format='%(log_color)s[%(levelname)s] %(asctime)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        level=level,
        log_colors={
            'DEBUG': 'blue',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'bold_red',
        },
    )
