"""
API endpoint paths.

Relative to the root of the Railfare application.
"""

# -------------------------------
# Fares
# -------------------------------
URL_FARE_CALCULATE = "/fare/calculate"

# -------------------------------
# Route distances
# -------------------------------
URL_ROUTE_DISTANCE = "/route/distance"
URL_ROUTE_DISTANCE_BATCH = "/route/distance/batch"
URL_TRAIN_ROUTE_DISTANCE = "/train/route/distance"

# -------------------------------
# Tariff ranges
# -------------------------------
URL_DISTANCE_FARE_RANGE = "/tariff/distance/range"
URL_AC_FARE_RANGE = "/tariff/ac/range"
URL_BERTH_FARE_RANGE = "/tariff/berth/range"

# -------------------------------
# Service
# -------------------------------
URL_HEALTH = "/health"
