import os

# divisors with a smaller magnitude are treated as zero
DIVISION_EPSILON = float(os.environ.get("UNIVAR_DIVISION_EPSILON", 1e-10))

# how deeply parentheses and calls may nest
MAX_NESTING_DEPTH = int(os.environ.get("UNIVAR_MAX_DEPTH", 100))

LOG_LEVEL = os.environ.get("UNIVAR_LOG_LEVEL", "WARNING").upper()
