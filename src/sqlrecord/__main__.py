# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Entry point for python -m sqlrecord."""

from .cli import main

if __name__ == "__main__":
    main()
