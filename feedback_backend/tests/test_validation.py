import unittest

from feedback_backend.errors import ValidationError
from feedback_backend.records import FEEDBACK, IMPROVEMENT
from feedback_backend.validation import validate_fields


class FeedbackValidationTests(unittest.TestCase):
    def test_trims_name_and_applies_defaults(self):
        fields = validate_fields(
            FEEDBACK, {"studentName": "  Riya  ", "house": "Megh", "rating": 4}
        )
        self.assertEqual(fields.studentName, "Riya")
        self.assertEqual(fields.house, "Megh")
        self.assertEqual(fields.rating, 4)
        self.assertEqual(fields.comment, "")

    def test_missing_or_null_name_is_anonymous(self):
        fields = validate_fields(FEEDBACK, {"house": "Bhairav", "rating": 3})
        self.assertEqual(fields.studentName, "Anonymous")
        fields = validate_fields(
            FEEDBACK,
            {"studentName": None, "house": "Bhairav", "rating": 3, "comment": None},
        )
        self.assertEqual(fields.studentName, "Anonymous")
        self.assertEqual(fields.comment, "")

    def test_blank_name_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_fields(
                FEEDBACK, {"studentName": "   ", "house": "Megh", "rating": 2}
            )
        self.assertIn("studentName", ctx.exception.message)

    def test_rating_bounds(self):
        for rating in (0, 6, -1, 100):
            with self.subTest(rating=rating):
                with self.assertRaises(ValidationError) as ctx:
                    validate_fields(FEEDBACK, {"house": "Megh", "rating": rating})
                self.assertIn("rating", ctx.exception.message)
        for rating in (1, 5):
            self.assertEqual(
                validate_fields(FEEDBACK, {"house": "Megh", "rating": rating}).rating,
                rating,
            )

    def test_rating_must_be_integral(self):
        self.assertEqual(
            validate_fields(FEEDBACK, {"house": "Megh", "rating": "3"}).rating, 3
        )
        with self.assertRaises(ValidationError):
            validate_fields(FEEDBACK, {"house": "Megh", "rating": 4.5})

    def test_unknown_house_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_fields(FEEDBACK, {"house": "Gryffindor", "rating": 5})
        self.assertIn("house", ctx.exception.message)

    def test_missing_required_fields_are_all_named(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_fields(FEEDBACK, {})
        self.assertIn("house", ctx.exception.message)
        self.assertIn("rating", ctx.exception.message)

    def test_extra_fields_are_dropped(self):
        fields = validate_fields(
            FEEDBACK, {"house": "Megh", "rating": 5, "admin": True, "_id": "x"}
        )
        self.assertNotIn("admin", fields.model_dump())

    def test_non_object_payload(self):
        with self.assertRaises(ValidationError):
            validate_fields(FEEDBACK, ["house", "Megh"])


class ImprovementValidationTests(unittest.TestCase):
    def test_trims_every_field(self):
        fields = validate_fields(
            IMPROVEMENT,
            {"problem": " Slow wifi ", "solution": " New router ", "submittedBy": " Ana "},
        )
        self.assertEqual(
            fields.model_dump(),
            {"problem": "Slow wifi", "solution": "New router", "submittedBy": "Ana"},
        )

    def test_blank_field_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_fields(
                IMPROVEMENT, {"problem": "x", "solution": "  ", "submittedBy": "y"}
            )
        self.assertIn("solution", ctx.exception.message)
        self.assertNotIn("problem", ctx.exception.message.split(":", 1)[1])


if __name__ == "__main__":
    unittest.main()
