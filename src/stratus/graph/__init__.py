"""Resource graph assembly: template, registry, exporters and annotation."""
