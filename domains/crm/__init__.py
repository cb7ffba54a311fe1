"""CRM: contacts, companies, tags, pipelines, deals and activities."""
