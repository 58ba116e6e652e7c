from __future__ import annotations

from firehose_output.app import main

if __name__ == "__main__":
    main()
