# Services layer: distributor clients, caching, rate combination, checkout orchestration
