import os
import sys
import time

import pandas as pd

from volume_discount import DiscountEngine


def main(input_file="input/cart_lines.csv", rules_file="input/volume_discount_rules.json",
         output_file="output/cart_lines.csv"):
    # Check if input files exist
    for path in (input_file, rules_file):
        if not os.path.exists(path):
            print(f"Error: Input file '{path}' not found.")
            return 1

    print(f"Loading cart lines from {input_file}...")
    start_time = time.time()
    try:
        df = pd.read_csv(input_file, dtype={'line_id': str, 'product_id': str})
        print(f"Loaded {len(df)} rows.")
    except (OSError, ValueError) as e:
        print(f"Error reading CSV: {e}")
        return 1

    try:
        with open(rules_file, 'r', encoding='utf-8') as f:
            raw_rules = f.read()
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error reading rules file: {e}")
        return 1

    engine = DiscountEngine()
    rules = engine.load_rules(raw_rules)
    print(f"Loaded {len(rules)} valid rule(s) from {rules_file}")

    processing_start = time.time()
    result_df = engine.process_dataframe(df, raw_rules)
    processing_time = time.time() - processing_start
    print(f"Processing complete in {processing_time:.2f} seconds.")
    print(f"Discounted {int(result_df['discount_applied'].sum())} of {len(result_df)} rows.")

    print(f"Saving output to {output_file}...")
    try:
        os.makedirs(os.path.dirname(output_file) or ".", exist_ok=True)
        result_df.to_csv(output_file, index=False)
        print("Successfully saved output CSV.")
    except OSError as e:
        print(f"Error saving output: {e}")
        return 1

    total_time = time.time() - start_time
    print(f"Total execution time: {total_time:.2f} seconds.")
    return 0


if __name__ == "__main__":
    sys.exit(main(*sys.argv[1:4]))
