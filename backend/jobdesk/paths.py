# collection names under each tenant
QUOTES = "quotes"
CLIENTS = "clients"
TRACKINGS = "trackings"
MATERIALS = "materials"
STOCK_MOVEMENTS = "stock_movements"
COUNTERS = "counters"
EXPENSES = "expenses"
TRANSACTIONS = "manual_transactions"
TEMPLATES = "templates"
