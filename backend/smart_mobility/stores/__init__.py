"""
Storage layer: abstract stores (base.py) and their SQLAlchemy
implementations (sql.py).
"""
