#!/usr/bin/env python3
"""
autowb Command Line Interface

Script entry point; the commands live in autowb.cli.main.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from autowb.cli.main import main


if __name__ == '__main__':
    main()
