# Schemas package init: Pydantic request/response models, camelCase on the wire
