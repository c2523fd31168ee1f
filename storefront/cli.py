# storefront/cli.py
import os

import click
import pandas as pd
from flask.cli import with_appcontext
from werkzeug.security import generate_password_hash

from .extensions import db
from .model import User, Settings, Product, ProductMaterial, MaterialSizeOption, ProductFinish, Finish
from .utils.money import D

# spreadsheet columns, one row per product/material/size/finish combination
CATALOG_COLUMNS = {
    "Product Code": "code",
    "Product Name": "name",
    "Description": "description",
    "Packaging Price": "packaging_price",
    "Material ID": "material_id",
    "Material": "material",
    "Material Price": "material_price",
    "Size (mm)": "size_mm",
    "Size Name": "size_name",
    "Size Cost": "size_cost",
    "Finish": "finish",
    "Finish Price": "finish_price",
}
REQUIRED_COLUMNS = ("Product Code", "Product Name", "Material", "Material Price")


@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", required=True)
@with_appcontext
def create_admin(email, password, name):
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        click.echo("Email already exists"); return
    u = User(email=email, name=name, password_hash=generate_password_hash(password), role="admin")
    db.session.add(u); db.session.commit()
    click.echo(f"Admin created: {u.id} {u.email}")


@click.command("seed-settings")
@click.option("--force", is_flag=True, help="Overwrite existing settings with the defaults.")
@with_appcontext
def seed_settings(force):
    settings = Settings.current()
    if settings and not force:
        click.echo("Settings already exist (use --force to reset)"); return
    if settings:
        settings.reset_to_defaults()
        settings.updated_by = "cli"
    else:
        settings = Settings.defaults()
        db.session.add(settings)
    db.session.commit()
    click.echo(f"Settings seeded: {len(settings.delivery_tiers)} delivery tiers, VAT {settings.vat_rate:g}%")


def _cell(row, key):
    value = row.get(key)
    if value is None or pd.isna(value):
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _read_catalog(path):
    ext = os.path.splitext(path)[1].lower()
    if ext in (".xlsx", ".xls"):
        df = pd.read_excel(path)
    elif ext == ".csv":
        df = pd.read_csv(path)
    else:
        raise click.BadParameter("catalog must be a .csv or .xlsx file")

    # Clean column names (remove extra spaces)
    df.columns = df.columns.str.strip()
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise click.BadParameter(f"missing columns: {', '.join(missing)}")
    return df.rename(columns=CATALOG_COLUMNS)


def import_catalog_frame(df):
    """Upsert products, materials, sizes and finishes from a catalogue frame.

    Returns (products_touched, rows_read).
    """
    finishes = {f.name.lower(): f for f in Finish.query.all()}
    products = {}

    for _, row in df.iterrows():
        code = str(_cell(row, "code"))
        product = products.get(code) or Product.query.filter_by(code=code).first()
        if not product:
            product = Product(code=code, name=str(_cell(row, "name")))
            db.session.add(product)
        products[code] = product
        product.name = str(_cell(row, "name"))
        if _cell(row, "description") is not None:
            product.description = str(_cell(row, "description"))
        if _cell(row, "packaging_price") is not None:
            product.packaging_price = D(_cell(row, "packaging_price"))

        material_name = str(_cell(row, "material"))
        material_id = _cell(row, "material_id")
        material = next((m for m in product.materials if m.name.lower() == material_name.lower()), None)
        if not material:
            material = ProductMaterial(name=material_name)
            product.materials.append(material)
        material.material_id = str(material_id) if material_id is not None else material.material_id
        material.base_price = D(_cell(row, "material_price"))

        size_mm = _cell(row, "size_mm")
        if size_mm is not None:
            size_mm = int(size_mm)
            size = next((s for s in material.size_options if s.size_mm == size_mm), None)
            if not size:
                size = MaterialSizeOption(size_mm=size_mm)
                material.size_options.append(size)
            size.name = _cell(row, "size_name") or f"{size_mm}mm"
            size.additional_cost = D(_cell(row, "size_cost"))

        finish_name = _cell(row, "finish")
        if finish_name is not None:
            finish = finishes.get(str(finish_name).lower())
            if not finish:
                finish = Finish(name=str(finish_name))
                db.session.add(finish)
                finishes[finish.name.lower()] = finish
            link = next((pf for pf in product.finishes if pf.finish is finish), None)
            if not link:
                link = ProductFinish(finish=finish)
                product.finishes.append(link)
            link.price_adjustment = D(_cell(row, "finish_price"))

    db.session.commit()
    return len(products), len(df)


@click.command("import-catalog")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_catalog(path):
    """Import products from a .csv or .xlsx sheet."""
    df = _read_catalog(path)
    products, rows = import_catalog_frame(df)
    click.echo(f"{rows} rows imported into {products} products from {path}")


def register_cli(app):
    app.cli.add_command(create_admin)
    app.cli.add_command(seed_settings)
    app.cli.add_command(import_catalog)
