from ingestion.jobs.auction_winning_bid import build_planner, build_runner

__all__ = ["build_planner", "build_runner"]
