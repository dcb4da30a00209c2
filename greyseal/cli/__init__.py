"""Command line entry points"""

import sys


def refuse_memory_bus(config, action: str) -> bool:
    """
    Report and return True when the in-memory bus is configured

    The in-memory bus lives inside one process, so a message published by one
    CLI invocation can never reach a worker running in another.
    """
    if config.bus.backend != "memory":
        return False
    print(
        f"Error: cannot {action} with bus.backend 'memory'; the in-memory bus does not "
        f"outlive this process. Set bus.backend: redis in the config file.",
        file=sys.stderr
    )
    return True
