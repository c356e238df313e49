"""Describes the Kookboek domain: recipes, the week menu and the grocery list.

Recipes come in by hand, by voice or from a web page. The last two go through
a language model, so the model sits inside the domain behind `LLMService`.
Everything else (scaling servings, slugs, category filters) is plain code that
can be tested without it.
"""
