"""Entry point: search | providers."""

import sys


def main():
    mode = "search"
    if len(sys.argv) > 1:
        mode = sys.argv[1].lower()

    if mode == "search":
        from mcpadvisor.interfaces.oneshot import main as run_oneshot_main

        sys.exit(run_oneshot_main(sys.argv[2:]))

    elif mode == "providers":
        from mcpadvisor.core.config import config
        from mcpadvisor.orchestrators.search.backends import PROVIDER_NAMES

        for name in PROVIDER_NAMES:
            enabled = name in config.providers or (name == "offline" and config.offline_enabled)
            priority = config.provider_priorities.get(name, 0)
            print(f"{name:10s} priority={priority:<3d} {'enabled' if enabled else 'disabled'}")
        sys.exit(0)

    else:
        print(f"Unknown mode: {mode}")
        print("Usage: python -m mcpadvisor.main [search|providers] ...")
        sys.exit(1)


if __name__ == "__main__":
    main()
