"""Entrypoint script for network reduction experiments."""

from rwnn_reduce.adapters.cli import main


if __name__ == "__main__":
    main()
