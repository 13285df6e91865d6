from jinja2 import Environment, PackageLoader, select_autoescape

# templates ship as package data (see pyproject.toml)
env = Environment(
    loader=PackageLoader("storefront", "templates"),
    autoescape=select_autoescape(["html"]),
)


def render_template(template_path: str, **context) -> str:
    return env.get_template(template_path).render(**context)
