import os
import sys

# Subsystem directories are imported from the repository root
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
