"""Firestore query helpers shared by the repositories.

Filters are passed as ``FieldFilter`` keywords, which newer Firestore SDKs
require; in-memory doubles used by the tests only understand the positional
form, so that is used when the keyword is rejected.
"""

from google.cloud.firestore_v1.base_query import FieldFilter


def apply_where(query, field_path, op_string, value):
    try:
        return query.where(filter=FieldFilter(field_path, op_string, value))
    except TypeError:
        return query.where(field_path, op_string, value)


def apply_order_desc(query, field_path, firestore_module):
    return query.order_by(field_path, direction=firestore_module.Query.DESCENDING)
