"""
Runs the multi-pass analysis on a local book file and prints the result.

Usage:
    python scripts/run_local_analysis.py path/to/book.pdf "Title" ["Author"]

Needs OPENROUTER_API_KEY (read from the environment or a .env at the repo root).
"""
import json
import os
import sys

# Add cloud_function to sys.path
sys.path.append(os.path.join(os.path.dirname(__file__), '../cloud_function'))

# Load .env manually
env_path = os.path.join(os.path.dirname(__file__), '../.env')
if os.path.exists(env_path):
    print(f"Loading .env from {env_path}")
    with open(env_path, 'r') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                key, value = line.split('=', 1)
                os.environ.setdefault(key, value)

os.environ.setdefault("CLOUD_LOGGING_ENABLED", "false")

from services.multi_pass_analyzer import analyze_book_with_multi_pass
from services.text_extractor import TextExtractor


def main():
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)

    path, title = sys.argv[1], sys.argv[2]
    author = sys.argv[3] if len(sys.argv) > 3 else None

    if not os.path.exists(path):
        print(f"Error: file not found at {path}")
        sys.exit(1)

    extracted = TextExtractor().extract_file(path)
    print(f"Extracted {len(extracted.text)} chars, {len(extracted.locations)} locations")

    result = analyze_book_with_multi_pass(extracted.text, title, author, locations=extracted.locations)
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
