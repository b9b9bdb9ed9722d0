from routers import admin, auth, categories, orders, products, upload

ROUTERS = (
    ("/products", products.router),
    ("/categories", categories.router),
    ("/orders", orders.router),
    ("/auth", auth.router),
    ("/admin", admin.router),
    ("/upload", upload.router),
)
