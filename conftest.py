# Lets the test modules inside oracle_v2/ import the package from a source checkout
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
