SCHEMA_SQL = r"""
-- Back-office accounts (admin / staff)
CREATE TABLE IF NOT EXISTS users (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  email TEXT NOT NULL UNIQUE,
  name TEXT,
  password_hash TEXT NOT NULL,
  role TEXT NOT NULL DEFAULT 'staff',     -- admin / staff
  status TEXT NOT NULL DEFAULT 'active',  -- active / inactive
  permissions TEXT NOT NULL DEFAULT '[]', -- JSON list of "<module>.<action>"
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS activity_log (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  actor TEXT NOT NULL,
  action TEXT NOT NULL,
  detail TEXT,
  permissions_snapshot TEXT               -- JSON list
);

CREATE TABLE IF NOT EXISTS login_logs (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  user_id INTEGER NOT NULL,
  FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
);

-- Catalog
CREATE TABLE IF NOT EXISTS categories (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  description TEXT
);

CREATE TABLE IF NOT EXISTS products (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  description TEXT,
  category_id INTEGER,                    -- checked in the service, no FK on purpose
  price REAL NOT NULL DEFAULT 0,
  unit TEXT,
  image_url TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

-- Sizes (Solo, Small, Big Bilao, ...)
CREATE TABLE IF NOT EXISTS sizes (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  dimensions TEXT,
  slices INTEGER NOT NULL DEFAULT 0,
  shape TEXT,                             -- Round / Rectangle
  max_varieties INTEGER NOT NULL DEFAULT 1,
  price REAL NOT NULL DEFAULT 0,
  available_products TEXT NOT NULL DEFAULT '[]'
);

-- Varieties ("menu items")
CREATE TABLE IF NOT EXISTS varieties (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  is_available INTEGER NOT NULL DEFAULT 1
);

-- Stock batches: one row per size x variety-set
CREATE TABLE IF NOT EXISTS stock_batches (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  size_id INTEGER NOT NULL,
  size_name TEXT NOT NULL,                -- denormalized
  varieties TEXT NOT NULL,                -- JSON list of variety names
  quantity INTEGER NOT NULL DEFAULT 0,
  minimum_stock INTEGER NOT NULL DEFAULT 0,
  reorder_point INTEGER NOT NULL DEFAULT 0,
  production_date TEXT NOT NULL,
  expiry_date TEXT NOT NULL,
  last_updated TEXT NOT NULL,
  remarks TEXT,
  FOREIGN KEY (size_id) REFERENCES sizes(id)
);

-- Append-only movement ledger (survives batch deletion)
CREATE TABLE IF NOT EXISTS stock_movements (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  stock_id INTEGER NOT NULL,
  size_name TEXT NOT NULL,
  varieties TEXT NOT NULL,
  type TEXT NOT NULL,                     -- in / out / adjustment / deleted
  quantity INTEGER NOT NULL,
  previous_stock INTEGER NOT NULL,
  current_stock INTEGER NOT NULL,
  ts TEXT NOT NULL,
  actor TEXT,
  remarks TEXT,
  deleted INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS ix_stock_movements_stock_id ON stock_movements(stock_id);

CREATE TABLE IF NOT EXISTS suppliers (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  contact TEXT,
  email TEXT,
  address TEXT,
  notes TEXT
);

CREATE TABLE IF NOT EXISTS damaged_goods (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  product_name TEXT NOT NULL,
  quantity INTEGER NOT NULL,
  reason TEXT,
  date_reported TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

-- Content
CREATE TABLE IF NOT EXISTS promotions (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  title TEXT NOT NULL,
  description TEXT,
  image_url TEXT,
  start_date TEXT,
  end_date TEXT,
  status TEXT NOT NULL DEFAULT 'inactive',
  discount_percentage REAL NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL,
  updated_at TEXT
);

CREATE TABLE IF NOT EXISTS announcements (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  title TEXT NOT NULL,
  content TEXT,
  image_url TEXT,
  priority TEXT NOT NULL DEFAULT 'medium',
  status TEXT NOT NULL DEFAULT 'inactive',
  target_audience TEXT NOT NULL DEFAULT 'all',
  publish_date TEXT,
  expiry_date TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

-- Customer orders (written by the storefront app)
CREATE TABLE IF NOT EXISTS customers (
  id TEXT PRIMARY KEY,
  name TEXT,
  first_name TEXT,
  last_name TEXT
);

CREATE TABLE IF NOT EXISTS orders (
  id TEXT PRIMARY KEY,
  user_id TEXT NOT NULL,
  pickup_date TEXT,
  pickup_time TEXT,
  status TEXT NOT NULL DEFAULT 'Pending',
  total_amount REAL NOT NULL DEFAULT 0,
  payment_method TEXT,
  payment_status TEXT NOT NULL DEFAULT 'Pending',
  gcash_reference TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS order_items (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  order_id TEXT NOT NULL,
  product_size TEXT,
  product_varieties TEXT NOT NULL DEFAULT '[]',
  quantity INTEGER NOT NULL,
  price REAL NOT NULL DEFAULT 0,
  FOREIGN KEY (order_id) REFERENCES orders(id) ON DELETE CASCADE
);
"""
