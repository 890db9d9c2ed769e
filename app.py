from __future__ import annotations

from interface_entry.cli import main


if __name__ == "__main__":
    main()
