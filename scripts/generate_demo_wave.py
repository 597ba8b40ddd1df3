"""Script to write a synthetic wave as WMS-style .xlsx uploads."""

import argparse
from pathlib import Path

from wave_ops.generators.wave_data import WaveDataGenerator, write_workbooks


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate demo wave uploads")
    parser.add_argument("--output-dir", type=str, default="data/uploads")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--elapsed-buckets", type=int, default=18)
    parser.add_argument("--stations", type=int, default=12)
    parser.add_argument("--trips", type=int, default=20)
    args = parser.parse_args()

    output_dir = Path(args.output_dir)
    print(f"Generating demo wave to {output_dir}...")

    wave = WaveDataGenerator(seed=args.seed).generate(
        elapsed_buckets=args.elapsed_buckets,
        n_sbl_stations=args.stations,
        n_trips=args.trips,
    )
    paths = write_workbooks(wave, output_dir)

    print("Done!")
    print("Stats:")
    print(f"  Wave:     {wave.wave_macro['wave_id']}")
    print(f"  Lines:    {wave.wave_macro['total_order_lines']}")
    for path in paths:
        print(f"  {path.name}")


if __name__ == "__main__":
    main()
