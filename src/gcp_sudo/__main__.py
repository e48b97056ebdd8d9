"""
Entry point for running gcp_sudo as a module.

Allows running the escalation tool server via:
    python -m gcp_sudo
"""

from gcp_sudo.server import main

if __name__ == "__main__":
    main()
