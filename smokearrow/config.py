"""Configuration settings for SmokeArrow."""

CONFIG = {
    "locale": "ja",  # display strings: "ja" or "en"
    # Tick scheduling
    "fast_tick_interval": 0.1,  # seconds - while navigating / low accuracy
    "slow_tick_interval": 0.5,  # seconds - every other state
    "heading_smoothing_time": 0.1,  # seconds - arrow low-pass time constant
    # Accuracy test
    "max_horizontal_accuracy": 65,  # meters
    "max_heading_accuracy": 25,  # degrees
    # Search trigger policy
    "research_distance": 50,  # meters moved since last search
    "research_interval": 60,  # seconds since last search
    "accuracy_improvement": 20,  # meters better than last search accuracy
    "failure_backoff_base": 5,  # seconds, doubled per consecutive failure
    "failure_backoff_max": 60,  # seconds
    # Target hysteresis
    "target_switch_ratio": 0.9,  # new target must be at most this fraction of current distance
    # Place search
    "search_radii": [1000, 2000, 5000],  # meters, searched in order
    "query_timeout": 2.0,  # seconds per provider query
    "cache_ttl": 5 * 60,  # seconds - failure fallback freshness window
    "smoking_spot_queries": ["喫煙所", "smoking area"],
    "cafe_queries": ["喫煙可能なカフェ", "喫煙可能 カフェ", "喫煙 カフェ", "smoking cafe"],
    # Nominatim provider
    "nominatim_url": "https://nominatim.openstreetmap.org/search",
    "nominatim_result_limit": 20,
    "nominatim_request_timeout": 10,  # seconds - bounds the worker thread after the query timeout gives up
    "nominatim_min_interval": 1.1,  # seconds between request starts (Nominatim usage policy: 1 req/s)
    # Location sources
    "location_poll_interval": 3,  # seconds between termux-location polls
    "location_command_timeout": 30,  # seconds
}
